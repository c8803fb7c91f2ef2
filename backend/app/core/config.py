from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Price Override Service"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    secret_key: str = "change-this-secret-key"
    access_token_expire_minutes: int = 60
    auth_token_url: str = "/api/v1/auth/login"

    database_url: str = "postgresql+psycopg2://pricing:pricing@db:5432/pricing"
    cors_origins: str = "http://localhost:3000"

    override_page_size: int = 10
    history_page_size: int = 20
    max_page_limit: int = 100
    expiry_batch_size: int = 200
    reason_max_length: int = 500

    system_actor_email: str = "system@pricing.local"
    system_actor_name: str = "System"
    seed_demo_data: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
