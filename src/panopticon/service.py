"""
Watch-only wallet service.

The caller-facing surface: address derivation from extended keys,
balance and history lookup, history polling and USD conversion. Every
lookup may return None; nothing here raises for network or input errors.
"""

from __future__ import annotations

from loguru import logger

from panopticon.cache import TransactionCache
from panopticon.config import Settings
from panopticon.constants import SENSITIVE_LOGGING
from panopticon.electrum.client import ElectrumClient
from panopticon.electrum.selection import make_strategy
from panopticon.errors import AddressError
from panopticon.models import DerivedAddress, HistoryUpdate, TransactionRecord, WatchedKey
from panopticon.price import PriceSource, RateCache
from panopticon.wallet import extended_key
from panopticon.wallet.address import address_to_scripthash
from panopticon.wallet.derivation import AddressDeriver


class WatchService:
    """
    Watch-only wallet service.

    Owns the derivation cache, transaction cache and rate cache so that
    several services (accounts, tests) can run side by side.
    """

    def __init__(
        self,
        electrum: ElectrumClient,
        rates: RateCache,
        transaction_cache: TransactionCache | None = None,
        deriver: AddressDeriver | None = None,
        network: str = "mainnet",
        price_source: PriceSource | None = None,
    ):
        self.electrum = electrum
        self.rates = rates
        self.transaction_cache = (
            transaction_cache if transaction_cache is not None else TransactionCache()
        )
        self.network = network
        self.deriver = deriver or AddressDeriver(network)
        self._price_source = price_source

    @classmethod
    def from_settings(cls, settings: Settings) -> WatchService:
        strategy = make_strategy(settings.server_selection, settings.electrum_servers)
        electrum = ElectrumClient(
            strategy=strategy,
            timeout=settings.socket_timeout,
            allow_insecure_tls=settings.allow_insecure_tls,
        )
        if settings.allow_insecure_tls:
            logger.warning("TLS certificate validation is DISABLED for Electrum servers")

        price_source = PriceSource(url=settings.price_url, timeout=settings.price_timeout)
        rates = RateCache(price_source.fetch, ttl_seconds=settings.rate_ttl_seconds)

        return cls(
            electrum=electrum,
            rates=rates,
            transaction_cache=TransactionCache(settings.transaction_cache_path),
            network=settings.network,
            price_source=price_source,
        )

    @staticmethod
    def is_extended_key(text: str) -> bool:
        return extended_key.is_extended_key(text)

    @staticmethod
    def label_for(key: str) -> str:
        return extended_key.label_for(key)

    def derive_addresses(self, key: str, start_index: int, count: int) -> list[str]:
        return self.deriver.derive_addresses(key, start_index, count)

    def describe_derived(
        self, key: str, start_index: int, count: int, label: str | None = None
    ) -> list[DerivedAddress]:
        """Derived addresses labelled "<label> #<index>"."""
        base_label = label or self.label_for(key)
        return [
            DerivedAddress(
                address=address,
                label=f"{base_label} #{start_index + offset}",
                index=start_index + offset,
                parent_key=key,
            )
            for offset, address in enumerate(self.derive_addresses(key, start_index, count))
        ]

    def describe_watched(self, watched: WatchedKey) -> list[DerivedAddress]:
        return self.describe_derived(
            watched.key, watched.start_index, watched.count, label=watched.label or None
        )

    def _scripthash(self, address: str) -> str | None:
        try:
            return address_to_scripthash(address, self.network)
        except AddressError as e:
            logger.error(f"Error processing Bitcoin address: {e}")
            return None

    async def get_balance(self, address: str) -> float | None:
        """Balance of an address in BTC"""
        scripthash = self._scripthash(address)
        if scripthash is None:
            return None
        return await self.electrum.get_balance(scripthash)

    async def get_history(self, address: str) -> list[TransactionRecord] | None:
        """Transaction history of an address"""
        scripthash = self._scripthash(address)
        if scripthash is None:
            return None
        return await self.electrum.get_history(scripthash)

    async def poll(self, address: str) -> HistoryUpdate | None:
        """
        Fetch history and reconcile it with the transaction cache.
        The cache is only touched when the fetch and the cache write succeeded.
        """
        history = await self.get_history(address)
        if history is None:
            return None

        try:
            update = self.transaction_cache.reconcile(history)
        except OSError as e:
            logger.error(f"Error writing transaction cache: {e}")
            return None

        if update.has_news:
            target = address if SENSITIVE_LOGGING else "watched address"
            logger.info(
                f"{target}: {len(update.new_mempool)} new mempool, "
                f"{len(update.new_confirmed)} new confirmed"
            )
        return update

    async def get_wallet_balance(self, key: str, start_index: int, count: int) -> float | None:
        """Sum of balances over the derived window; None if any lookup fails."""
        addresses = self.derive_addresses(key, start_index, count)
        if not addresses and count > 0:
            return None

        total = 0.0
        for address in addresses:
            balance = await self.get_balance(address)
            if balance is None:
                return None
            total += balance
        return total

    async def convert_to_usd(self, btc_amount: float, force_refresh: bool = False) -> float | None:
        return await self.rates.convert(btc_amount, force_refresh)

    async def close(self) -> None:
        if self._price_source is not None:
            await self._price_source.close()
