"""
Configuration management for RSS Aggregation.

Uses Pydantic for validation and pydantic-settings for environment variable support.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetcherConfig(BaseSettings):
    """RSS/Atom fetcher configuration."""

    model_config = SettingsConfigDict(env_prefix="FETCHER_")

    # HTTP settings
    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Request timeout")
    user_agent: str = Field(
        default="RSS-Aggregation/0.1.0",
        description="User-Agent header"
    )

    # Follow redirects
    follow_redirects: bool = Field(default=True)
    max_redirects: int = Field(default=5, ge=0, le=20)

    # Concurrency
    max_concurrent: int = Field(
        default=10, ge=1, le=100,
        description="Maximum simultaneous feed fetches across all requests"
    )
    max_workers: int = Field(
        default=20, ge=1, le=200,
        description="Thread pool size for one aggregation run"
    )


class AggregatorConfig(BaseSettings):
    """Article aggregation configuration."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATOR_")

    recent_days: int = Field(
        default=5, ge=0, le=365,
        description="Only keep articles published in the last N days"
    )
    require_content_encoded: bool = Field(
        default=False,
        description="Drop articles without content:encoded HTML"
    )


class SubscriptionConfig(BaseSettings):
    """OPML subscription file configuration."""

    model_config = SettingsConfigDict(env_prefix="SUBSCRIPTIONS_")

    opml_path: str = Field(default="public/rss.opml", description="OPML file path")
    strict: bool = Field(
        default=False,
        description="Fail on malformed OPML instead of returning partial results"
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        description="Log format"
    )

    # File logging
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_path: str = Field(default="logs/rss_aggregation.log", description="Log file path")
    rotation: str = Field(default="100 MB", description="Log rotation size")
    retention: str = Field(default="30 days", description="Log retention period")
    file_serialize: bool = Field(default=False, description="Write file logs as JSON lines")

    # Console logging
    console_enabled: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v


class WebConfig(BaseSettings):
    """Web API configuration."""

    model_config = SettingsConfigDict(env_prefix="WEB_")

    host: str = Field(default="0.0.0.0", description="Web server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Web server port")
    debug: bool = Field(default=False, description="Debug mode")

    # CORS
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:4321"],
        description="Origins allowed to read API responses"
    )
    cors_methods: list[str] = Field(default_factory=lambda: ["GET", "POST"])
    cors_headers: list[str] = Field(default_factory=lambda: ["Content-Type", "Accept"])
    cors_max_age: int = Field(default=3600, ge=0, description="Preflight cache seconds")

    @field_validator("cors_methods")
    @classmethod
    def normalize_methods(cls, v: list[str]) -> list[str]:
        """Normalize HTTP method names."""
        return [method.upper().strip() for method in v]


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RSSAGG_",
        case_sensitive=False,
    )

    # Application
    version: str = Field(default="0.1.0", description="Application version")
    app_name: str = Field(default="RSS Aggregation", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    # Sub-configurations
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    subscriptions: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    # Paths
    config_dir: str = Field(default="config", description="Configuration directory")

    def get_config_path(self, name: str) -> Path:
        """Get path to a configuration file."""
        return Path(self.config_dir) / name


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration instance (None resets it)."""
    global _config
    _config = config


_NESTED_CONFIGS = {
    "fetcher": FetcherConfig,
    "aggregator": AggregatorConfig,
    "subscriptions": SubscriptionConfig,
    "logging": LoggingConfig,
    "web": WebConfig,
}


def load_config_from_yaml(yaml_path: str) -> Config:
    """Load configuration from a YAML file.

    Note: Values loaded from YAML take precedence over environment variables.
    For environment variable overrides, use .env file or set them directly.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        Config instance loaded from the file.
    """
    import yaml

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with yaml_file.open("r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    main_config = {}
    nested_configs = {}

    for key, value in config_dict.items():
        if key in _NESTED_CONFIGS:
            nested_configs[key] = value or {}
        else:
            main_config[key] = value

    # Nested sections are built individually so env vars still fill the gaps
    for key, config_class in _NESTED_CONFIGS.items():
        if key in nested_configs:
            nested_configs[key] = config_class(**nested_configs[key])
        else:
            nested_configs[key] = config_class()

    main_config.update(nested_configs)
    return Config(**main_config)


def reload_config() -> Config:
    """Reload configuration from environment and YAML files."""
    global _config
    _config = None

    config_yaml = Path("config/config.yaml")
    if config_yaml.exists():
        _config = load_config_from_yaml(str(config_yaml))
    else:
        _config = Config()

    return _config
