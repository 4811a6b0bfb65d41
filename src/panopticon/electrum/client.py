"""
Electrum client for scripthash balance and history queries.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from panopticon.constants import (
    DEFAULT_SOCKET_TIMEOUT,
    ELECTRUM_METHOD_BALANCE,
    ELECTRUM_METHOD_HISTORY,
    SATS_PER_BTC,
    SENSITIVE_LOGGING,
)
from panopticon.electrum.selection import RandomSelection, ServerSelectionStrategy
from panopticon.electrum.session import ElectrumSession
from panopticon.errors import ElectrumError, ProtocolError
from panopticon.models import ElectrumServer, TransactionRecord


class ElectrumClient:
    """
    Opens a fresh session per request on a server chosen by the strategy.

    Every call is a single attempt: no retry and no failover.
    """

    def __init__(
        self,
        servers: list[ElectrumServer] | None = None,
        strategy: ServerSelectionStrategy | None = None,
        timeout: float = DEFAULT_SOCKET_TIMEOUT,
        allow_insecure_tls: bool = False,
    ):
        if strategy is None:
            if not servers:
                raise ValueError("Either servers or a selection strategy is required")
            strategy = RandomSelection(servers)
        self.strategy = strategy
        self.timeout = timeout
        self.allow_insecure_tls = allow_insecure_tls

    def _new_session(self, server: ElectrumServer) -> ElectrumSession:
        return ElectrumSession(
            server, timeout=self.timeout, allow_insecure_tls=self.allow_insecure_tls
        )

    async def request(self, method: str, params: list[Any]) -> Any:
        """
        Send one request and return its "result".

        Raises:
            ElectrumError: On connection, timeout or framing failure
            ProtocolError: If the response carries no usable result
        """
        server = self.strategy.choose()
        logger.debug(f"Calling {method} on {server}")

        response = await self._new_session(server).call(method, params)

        if response.get("error"):
            raise ProtocolError(f"{method} returned error: {response['error']}")
        if response.get("result") is None:
            raise ProtocolError(f"{method} returned no result")
        return response["result"]

    async def get_balance(self, scripthash: str) -> float | None:
        """Confirmed + unconfirmed balance in BTC, or None if unavailable."""
        try:
            result = await self.request(ELECTRUM_METHOD_BALANCE, [scripthash])
        except ElectrumError as e:
            logger.error(f"Error fetching balance: {e}")
            return None

        if not isinstance(result, dict):
            logger.error(f"Unexpected balance result: {result!r}")
            return None

        confirmed = result.get("confirmed", 0)
        unconfirmed = result.get("unconfirmed", 0)
        # bool is an int subclass; true and false are not satoshi amounts
        if any(isinstance(v, bool) or not isinstance(v, int) for v in (confirmed, unconfirmed)):
            logger.error(f"Non-integer balance result: {result!r}")
            return None

        balance = (confirmed + unconfirmed) / SATS_PER_BTC
        if SENSITIVE_LOGGING:
            logger.debug(
                f"Scripthash {scripthash} balance: {balance} BTC "
                f"(confirmed: {confirmed}, unconfirmed: {unconfirmed} sats)"
            )
        return balance

    async def get_history(self, scripthash: str) -> list[TransactionRecord] | None:
        """Raw {tx_hash, height} history entries, or None if unavailable."""
        try:
            result = await self.request(ELECTRUM_METHOD_HISTORY, [scripthash])
        except ElectrumError as e:
            logger.error(f"Error fetching history: {e}")
            return None

        if not isinstance(result, list):
            logger.error(f"Unexpected history result: {result!r}")
            return None

        records = []
        for entry in result:
            if not isinstance(entry, dict) or "tx_hash" not in entry:
                logger.warning(f"Skipping malformed history entry: {entry!r}")
                continue
            records.append(TransactionRecord.from_dict(entry))
        return records
