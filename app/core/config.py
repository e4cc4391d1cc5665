"""Configuration management for Streamsite."""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import PositiveFloat, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # TMDB metadata API
    search_endpoint: str = "https://api.themoviedb.org/3"
    tmdb_bearer: SecretStr | None = None
    tmdb_language: str = "en-US"
    image_base_url: str = "https://image.tmdb.org/t/p"

    # Embed provider
    movie_endpoint: str | None = None

    # Network settings
    request_timeout: PositiveFloat = 10.0  # Upstream request deadline in seconds
    # Proxy configuration in the format http://host:port or socks5://host:port
    proxy: str | None = None

    @field_validator("proxy")
    @classmethod
    def validate_proxy(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https", "socks4", "socks5", "socks5h"):
            raise ValueError(
                "Proxy must be a valid URL with scheme http/https/socks4/socks5/socks5h"
            )
        if not parsed.netloc:
            raise ValueError("Proxy must have a host and port")
        return v

    @field_validator("movie_endpoint", mode="before")
    @classmethod
    def empty_endpoint_is_unset(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # App settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def bearer_token(self) -> str | None:
        if self.tmdb_bearer is None:
            return None
        return self.tmdb_bearer.get_secret_value() or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
