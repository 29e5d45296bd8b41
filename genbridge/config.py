"""Configuration management for genbridge."""
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Credentials, endpoints and tuning read from the environment and ``.env``."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Native provider (Gemini API / Vertex AI)
    gemini_api_key: str = ""
    google_api_key: str = ""
    google_cloud_project: str = ""
    google_cloud_location: str = ""

    # OpenAI and OpenAI-compatible providers
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_organization: str = ""
    openai_max_tokens: Optional[int] = None
    openai_temperature: Optional[float] = None
    openai_top_p: Optional[float] = None

    # Model requested for the session; empty means the configured Gemini default
    model: str = Field(default="", validation_alias=AliasChoices("GENBRIDGE_MODEL", "genbridge_model"))

    # Transport
    proxy: str = Field(
        default="",
        validation_alias=AliasChoices("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"),
    )
    request_timeout: float = Field(
        default=600.0,
        validation_alias=AliasChoices("GENBRIDGE_REQUEST_TIMEOUT", "genbridge_request_timeout"),
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
