"""
Electrum protocol client.

Available components:
- ElectrumSession: one TCP/TLS connection carrying one JSON-RPC exchange
- ElectrumClient: balance and history queries over fresh sessions
- FrameReader: incremental JSON framing over a byte stream
- ServerSelectionStrategy: random (default) or round-robin server choice
"""

from panopticon.electrum.client import ElectrumClient
from panopticon.electrum.framing import FrameReader
from panopticon.electrum.selection import (
    RandomSelection,
    RoundRobinSelection,
    ServerSelectionStrategy,
    make_strategy,
)
from panopticon.electrum.session import ElectrumSession, SessionState

__all__ = [
    "ElectrumClient",
    "ElectrumSession",
    "FrameReader",
    "RandomSelection",
    "RoundRobinSelection",
    "ServerSelectionStrategy",
    "SessionState",
    "make_strategy",
]
