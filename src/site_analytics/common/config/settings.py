"""Configuration settings for the site analytics services."""

import os
import yaml
from dataclasses import dataclass, field, fields
from typing import Optional


def _coerce_numbers(instance) -> None:
    """Convert env-substituted strings back to the declared int/float/bool types."""
    for f in fields(instance):
        value = getattr(instance, f.name)
        if not isinstance(value, str):
            continue
        if f.type in (int, "int"):
            setattr(instance, f.name, int(value))
        elif f.type in (float, "float"):
            setattr(instance, f.name, float(value))
        elif f.type in (bool, "bool"):
            setattr(instance, f.name, value.strip().lower() in ("1", "true", "yes", "on"))


@dataclass
class RedisConfig:
    """Redis configuration."""
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    socket_timeout: float = 10.0
    socket_connect_timeout: float = 5.0

    def __post_init__(self):
        _coerce_numbers(self)
        if self.password == "":
            self.password = None


@dataclass
class QueueConfig:
    """Event queue configuration."""
    name: str = "analytics:events"
    dequeue_timeout_seconds: int = 5

    def __post_init__(self):
        _coerce_numbers(self)


@dataclass
class DatabaseConfig:
    """PostgreSQL configuration."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: Optional[str] = None
    name: str = "analytics"
    pool_min_size: int = 1
    pool_max_size: int = 20
    connect_timeout_seconds: float = 2.0
    command_timeout_seconds: float = 30.0
    max_inactive_connection_lifetime: float = 30.0
    create_schema: bool = False

    def __post_init__(self):
        _coerce_numbers(self)
        if self.password == "":
            self.password = None


@dataclass
class WorkerConfig:
    """Worker loop configuration."""
    backoff_seconds: float = 1.0
    drain_seconds: float = 2.0
    log_every: int = 100
    queue_report_every: int = 10

    def __post_init__(self):
        _coerce_numbers(self)


@dataclass
class ApiConfig:
    """Ingestion API configuration."""
    host: str = "0.0.0.0"
    port: int = 3000
    enqueue_drain_seconds: float = 5.0

    def __post_init__(self):
        _coerce_numbers(self)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"
    output: str = "stdout"


@dataclass
class PipelineConfig:
    """Main configuration shared by the ingestion API and the worker."""
    redis: RedisConfig = field(default_factory=RedisConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        # BRPOP blocks server-side; the client socket must outlive the wait
        timeout = self.redis.socket_timeout
        if timeout is not None and self.queue.dequeue_timeout_seconds >= timeout:
            raise ValueError(
                f"queue.dequeue_timeout_seconds ({self.queue.dequeue_timeout_seconds}) must be "
                f"less than redis.socket_timeout ({self.redis.socket_timeout})"
            )


def load_config(config_file: str) -> PipelineConfig:
    """Load configuration from YAML file."""

    # Load YAML file
    with open(config_file, 'r') as f:
        config_data = yaml.safe_load(f) or {}

    # Environment variable substitution
    config_data = _substitute_env_vars(config_data)

    return PipelineConfig(
        redis=RedisConfig(**config_data.get('redis', {})),
        queue=QueueConfig(**config_data.get('queue', {})),
        database=DatabaseConfig(**config_data.get('database', {})),
        worker=WorkerConfig(**config_data.get('worker', {})),
        api=ApiConfig(**config_data.get('api', {})),
        logging=LoggingConfig(**config_data.get('logging', {}))
    )


def _substitute_env_vars(data):
    """Recursively substitute environment variables in configuration."""
    if isinstance(data, dict):
        return {key: _substitute_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    elif isinstance(data, str) and data.startswith('${') and data.endswith('}'):
        # Extract environment variable name and default value
        env_spec = data[2:-1]  # Remove ${ and }

        if ':' in env_spec:
            env_name, default_value = env_spec.split(':', 1)
        else:
            env_name, default_value = env_spec, None

        return os.getenv(env_name, default_value)
    else:
        return data
