"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Behavior Analytics API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: PostgresDsn
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Security
    secret_key: str = Field(min_length=32)
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Kafka
    kafka_brokers: str = "localhost:9092"
    kafka_client_id: str = "pc-ecommerce-app"
    kafka_group_id: str = "pc-ecommerce-group"
    kafka_behavior_topic: str = "user-behavior"
    kafka_auth_topic: str = "user-auth"
    kafka_consumer_enabled: bool = False
    kafka_publish_timeout: float = 30.0
    kafka_poll_timeout: float = 1.0
    kafka_retries: int = 10
    kafka_retry_backoff_ms: int = 300
    kafka_retry_backoff_max_ms: int = 30000

    @property
    def kafka_bootstrap_servers(self) -> str:
        """Normalize the broker list for librdkafka."""
        return ",".join(broker.strip() for broker in self.kafka_brokers.split(",") if broker.strip())

    # Reporting
    report_timezone: str = "Asia/Ho_Chi_Minh"
    estimated_tax_rate: float = 0.1
    low_stock_threshold: int = 5
    excess_stock_threshold: int = 50

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
