from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str
    rabbitmq_url: str
    service_name: str = "retail-functions"
    log_level: str = "INFO"
    cors_origins: str = "*"
    rabbitmq_prefetch_count: int = 10
    db_pool_size: int = 20
    db_max_overflow: int = 10

    order_queue_name: str = "orders"
    order_preview_queue_name: str = "orders-preview"
    order_preview_ttl_minutes: int = 10
    queue_max_dequeue_count: int = 5
    poison_queue_suffix: str = "-poison"

    products_table: str = "Products"
    orders_table: str = "Orders"

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("Only PostgreSQL and SQLite are supported")
        return v

    @field_validator("order_queue_name", "order_preview_queue_name")
    @classmethod
    def normalize_queue_name(cls, v: str) -> str:
        return v.lower()


settings = Settings()
