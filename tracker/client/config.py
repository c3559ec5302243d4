from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    api_base_url: str = "http://localhost:8080"
    request_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(env_prefix="PT_CLIENT_", extra="ignore")


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
