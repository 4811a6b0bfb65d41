"""
panopticon - Watch-only Bitcoin monitoring over the Electrum protocol

Derives addresses from extended public keys and queries balances and
transaction history directly from an Electrum server.
"""

__version__ = "0.3.0"

from panopticon.cache import TransactionCache
from panopticon.config import Settings, get_settings
from panopticon.electrum.client import ElectrumClient
from panopticon.errors import (
    AddressError,
    DecodeError,
    DerivationError,
    ElectrumConnectionError,
    ElectrumError,
    ElectrumTimeoutError,
    FramingError,
    PanopticonError,
    ProtocolError,
)
from panopticon.models import (
    DerivedAddress,
    ElectrumServer,
    HistoryUpdate,
    RateEntry,
    TransactionRecord,
    WatchedKey,
)
from panopticon.price import PriceSource, RateCache
from panopticon.service import WatchService

__all__ = [
    "AddressError",
    "DecodeError",
    "DerivationError",
    "DerivedAddress",
    "ElectrumClient",
    "ElectrumConnectionError",
    "ElectrumError",
    "ElectrumServer",
    "ElectrumTimeoutError",
    "FramingError",
    "HistoryUpdate",
    "PanopticonError",
    "PriceSource",
    "ProtocolError",
    "RateCache",
    "RateEntry",
    "Settings",
    "TransactionCache",
    "TransactionRecord",
    "WatchService",
    "WatchedKey",
    "get_settings",
]
