"""
Data models.

Pydantic models validate configuration-facing values; plain dataclasses
carry wallet and wire records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ElectrumServer(BaseModel):
    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    use_ssl: bool = False

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, spec: str) -> ElectrumServer:
        """
        Parse "host:port" or "host:port:s" (s = SSL, t = plain TCP).
        """
        parts = spec.strip().rsplit(":", 2)
        if len(parts) == 3 and parts[2] in ("s", "t"):
            host, port, proto = parts
        else:
            host, _, port = spec.strip().rpartition(":")
            proto = "t"
        if not host or not port.isdigit():
            raise ValueError(f"Invalid Electrum server spec: {spec!r}")
        return cls(host=host, port=int(port), use_ssl=proto == "s")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}:{'s' if self.use_ssl else 't'}"


class WatchedKey(BaseModel):
    """An extended key together with the address window to watch."""

    key: str
    label: str = ""
    start_index: int = Field(default=0, ge=0)
    count: int = Field(default=20, ge=0)

    @field_validator("key")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("xpub", "ypub", "zpub")):
            raise ValueError("Extended key must start with xpub, ypub or zpub")
        return v


@dataclass
class TransactionRecord:
    """One entry of blockchain.scripthash.get_history."""

    tx_hash: str
    height: int  # 0 or -1 = mempool, >0 = block height

    @property
    def confirmed(self) -> bool:
        return self.height > 0

    @property
    def status(self) -> str:
        return "confirmed" if self.confirmed else "mempool"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionRecord:
        height = data.get("height", 0)
        return cls(tx_hash=str(data["tx_hash"]), height=height if isinstance(height, int) else 0)


@dataclass
class HistoryUpdate:
    """Classification of one history poll against the transaction cache."""

    new_mempool: list[str] = field(default_factory=list)
    new_confirmed: list[str] = field(default_factory=list)
    confirmed_from_mempool: list[str] = field(default_factory=list)
    changed: list[TransactionRecord] = field(default_factory=list)

    @property
    def has_news(self) -> bool:
        return bool(self.new_mempool or self.new_confirmed or self.confirmed_from_mempool)


@dataclass
class RateEntry:
    value: float
    fetched_at_ms: int


@dataclass
class DerivedAddress:
    address: str
    label: str
    index: int
    parent_key: str
    balance: float | None = None
    usd_balance: float | None = None
