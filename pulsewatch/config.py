"""Configuration management with Pydantic models loaded from YAML."""

import os
from typing import Dict

import yaml
from pydantic import BaseModel, Field, field_validator

TRUTHY = ("true", "1", "yes", "on")


class WebhookConfig(BaseModel):
    """Webhook notification configuration."""
    enabled: bool = False
    url: str = ""
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    retry_count: int = 3
    retry_delay: int = 5
    timeout: int = 10

    @field_validator('retry_count')
    @classmethod
    def retry_count_must_be_positive(cls, v):
        if v < 0:
            raise ValueError('retry_count must be non-negative')
        return v

    @field_validator('url')
    @classmethod
    def url_must_be_set_if_enabled(cls, v, info):
        if info.data.get('enabled') and not v:
            raise ValueError('url must be set when webhook notifications are enabled')
        return v


class TelegramConfig(BaseModel):
    """Telegram notification configuration."""
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""
    parse_mode: str = "Markdown"
    timeout: int = 10
    retry_count: int = 3
    retry_delay: int = 1

    @field_validator('bot_token', 'chat_id')
    @classmethod
    def required_if_enabled(cls, v, info):
        if info.data.get('enabled') and not v:
            field_name = info.field_name
            raise ValueError(f'{field_name} must be set when Telegram notifications are enabled')
        return v


class NotificationsConfig(BaseModel):
    """Notifications configuration."""
    enabled: bool = True
    send_recovery: bool = True
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class DatabaseConfig(BaseModel):
    """Database configuration."""
    type: str = "sqlite"
    url: str = "sqlite+aiosqlite:///./data/pulsewatch.db"
    pool_size: int = 5
    max_overflow: int = 10
    pool_pre_ping: bool = True
    echo: bool = False
    sqlite_busy_timeout: float = 30.0

    @field_validator('type')
    @classmethod
    def database_type_must_be_supported(cls, v):
        supported = ['sqlite', 'postgresql']
        if v not in supported:
            raise ValueError(f'database type must be one of {supported}')
        return v


class MonitoringConfig(BaseModel):
    """Probe scheduling, baseline and scoring cadence."""
    max_concurrent_probes: int = 20
    default_timeout_seconds: float = 10.0
    region: str = "global"
    probe_tick_seconds: int = 60
    baseline_interval_seconds: int = 3600
    baseline_window_hours: int = 168
    scoring_interval_seconds: int = 3600
    health_cache_ttl_seconds: int = 300
    check_history_days: int = 30
    cleanup_interval: int = 86400

    @field_validator('max_concurrent_probes')
    @classmethod
    def max_concurrent_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('max_concurrent_probes must be at least 1')
        return v

    @field_validator('default_timeout_seconds')
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('default_timeout_seconds must be greater than 0')
        return v

    @field_validator(
        'probe_tick_seconds',
        'baseline_interval_seconds',
        'scoring_interval_seconds',
        'cleanup_interval',
    )
    @classmethod
    def interval_must_be_positive(cls, v, info):
        if v < 1:
            raise ValueError(f'{info.field_name} must be at least 1 second')
        return v


class DetectionConfig(BaseModel):
    """Degradation detection thresholds."""
    latency_multiplier: float = 2.0
    error_rate_threshold: float = 0.10
    consecutive_failures: int = 3

    @field_validator('latency_multiplier')
    @classmethod
    def multiplier_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('latency_multiplier must be greater than 0')
        return v

    @field_validator('error_rate_threshold')
    @classmethod
    def error_rate_must_be_fraction(cls, v):
        if not (0 <= v <= 1):
            raise ValueError('error_rate_threshold must be between 0 and 1')
        return v

    @field_validator('consecutive_failures')
    @classmethod
    def consecutive_failures_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('consecutive_failures must be at least 1')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"
    file: str = "logs/pulsewatch.log"
    console: bool = True

    @field_validator('level')
    @classmethod
    def log_level_must_be_valid(cls, v):
        if isinstance(v, str):
            v = v.upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v not in valid_levels:
            raise ValueError(f'log level must be one of {valid_levels}')
        return v


class PrometheusConfig(BaseModel):
    """Prometheus metrics configuration."""
    enabled: bool = True
    path: str = "/metrics"


class APIConfig(BaseModel):
    """Operational HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator('port')
    @classmethod
    def port_must_be_valid(cls, v):
        if not (1 <= v <= 65535):
            raise ValueError('port must be between 1 and 65535')
        return v


class RedisConfig(BaseModel):
    """Redis configuration for the health summary cache."""
    enabled: bool = False
    url: str = "redis://localhost:6379/0"
    max_connections: int = 10
    socket_timeout: int = 5
    socket_connect_timeout: int = 5


class Config(BaseModel):
    """Main configuration class."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    prometheus: PrometheusConfig = Field(default_factory=PrometheusConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)


def load_config() -> Config:
    """
    Load configuration from YAML file and environment variables.

    The file path comes from ``CONFIG_PATH`` (default ``config/config.yaml``).
    A missing file is tolerated only when ``APP_ENV`` is ``development``.

    Returns:
        Config: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist outside development
        ValueError: If the YAML is malformed or fails validation
    """
    app_env = os.getenv("APP_ENV", "development")
    config_path = os.getenv("CONFIG_PATH", "config/config.yaml")

    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {config_path}: {e}")
    elif app_env != "development":
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        config = Config(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        config.database.url = database_url
        config.database.type = "postgresql" if database_url.startswith("postgresql") else "sqlite"

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    redis_enabled = os.getenv("REDIS_ENABLED")
    if redis_enabled is not None:
        config.redis.enabled = redis_enabled.lower() in TRUTHY

    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        config.redis.url = redis_url

    region = os.getenv("PROBE_REGION")
    if region:
        config.monitoring.region = region

    if config.redis.enabled and not config.redis.url:
        raise ValueError("Redis is enabled but URL is not set")

    return config
