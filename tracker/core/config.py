from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "position-tracker-api"
    environment: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8080
    cors_allow_origins: list[str] = ["*"]
    seed_rows_path: str | None = None
    strict_validation: bool = False
    webhook_status_map_json: str | None = None
    log_level: str = "INFO"
    otel_enabled: bool = True
    otel_service_name: str = "position-tracker-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="PT_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
