"""
Configuration management using pydantic-settings.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from panopticon.constants import (
    DEFAULT_PRICE_TIMEOUT,
    DEFAULT_PRICE_URL,
    DEFAULT_RATE_TTL_SECONDS,
    DEFAULT_SOCKET_TIMEOUT,
)
from panopticon.models import ElectrumServer


def default_servers() -> list[ElectrumServer]:
    return [ElectrumServer(host="127.0.0.1", port=50001, use_ssl=False)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PANOPTICON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    network: Literal["mainnet", "testnet", "signet", "regtest"] = "mainnet"

    electrum_servers: list[ElectrumServer] = Field(default_factory=default_servers)
    server_selection: Literal["random", "round_robin"] = "random"
    socket_timeout: float = Field(default=DEFAULT_SOCKET_TIMEOUT, gt=0)

    # Skip TLS certificate validation for servers trusted by host/port.
    # WARNING: only enable for servers you operate or otherwise trust.
    allow_insecure_tls: bool = False

    price_url: str = DEFAULT_PRICE_URL
    price_timeout: float = Field(default=DEFAULT_PRICE_TIMEOUT, gt=0)
    rate_ttl_seconds: int = Field(default=DEFAULT_RATE_TTL_SECONDS, ge=0)

    data_dir: Path = Path.home() / ".panopticon"

    log_level: str = "INFO"

    @property
    def transaction_cache_path(self) -> Path:
        return self.data_dir / "transaction_cache.json"


def get_settings() -> Settings:
    return Settings()
