"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class StoreBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class RedisSettings(BaseSettings):
    """Redis configuration."""

    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: str = Field(default="", alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_", "extra": "ignore", "populate_by_name": True}


class KafkaSettings(BaseSettings):
    """Kafka configuration."""

    bootstrap_servers: str = Field(default="localhost:9092", alias="KAFKA_BOOTSTRAP_SERVERS")
    topic_prefix: str = Field(default="coordinator", alias="KAFKA_TOPIC_PREFIX")
    enabled: bool = Field(default=False, alias="KAFKA_ENABLED")

    model_config = {"env_prefix": "KAFKA_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    service_name: str = Field(default="deployment-coordinator", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    metrics_port: int | None = Field(default=None, ge=1, le=65535, alias="METRICS_PORT")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class CoordinatorSettings(BaseSettings):
    """Deployment coordination behaviour."""

    history_limit: int = Field(default=100, ge=1, alias="COORDINATOR_HISTORY_LIMIT")
    plan_ttl_days: int = Field(default=30, ge=1, alias="COORDINATOR_PLAN_TTL_DAYS")
    execution_ttl_days: int = Field(default=7, ge=1, alias="COORDINATOR_EXECUTION_TTL_DAYS")
    dry_run_task_delay: float = Field(default=0.1, ge=0, alias="COORDINATOR_DRY_RUN_TASK_DELAY")
    serialize_plan_executions: bool = Field(
        default=False, alias="COORDINATOR_SERIALIZE_PLAN_EXECUTIONS"
    )
    plan_lock_ttl_seconds: int = Field(default=7200, alias="COORDINATOR_PLAN_LOCK_TTL")
    store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY, alias="COORDINATOR_STORE_BACKEND"
    )

    @property
    def plan_ttl_seconds(self) -> int:
        return self.plan_ttl_days * 24 * 60 * 60

    @property
    def execution_ttl_seconds(self) -> int:
        return self.execution_ttl_days * 24 * 60 * 60

    model_config = {"env_prefix": "COORDINATOR_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
