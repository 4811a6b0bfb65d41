"""
Receiving-address derivation from extended public keys.

BIP44/49/84 account keys are expanded along the receiving chain only:
m/0/i for i in [start_index, start_index + count).
"""

from __future__ import annotations

from loguru import logger

from panopticon.constants import SENSITIVE_LOGGING
from panopticon.errors import DecodeError, DerivationError
from panopticon.wallet.bip32 import HDPublicKey
from panopticon.wallet.extended_key import (
    ExtendedKey,
    ScriptType,
    parse_extended_key,
    script_type_for,
)

RECEIVING_CHAIN = 0


def derive(
    key: ExtendedKey,
    script_type: ScriptType,
    start_index: int,
    count: int,
    network: str = "mainnet",
) -> list[str]:
    """
    Derive receiving addresses m/0/start_index .. m/0/start_index+count-1.

    Position k of the result holds index start_index + k.

    Raises:
        DerivationError: On a negative window or any child that cannot be derived
    """
    if start_index < 0 or count < 0:
        raise DerivationError(f"Invalid derivation window: start={start_index}, count={count}")

    receiving = HDPublicKey.from_extended_key(key).derive_child(RECEIVING_CHAIN)

    addresses = []
    for index in range(start_index, start_index + count):
        child = receiving.derive_child(index)
        addresses.append(child.get_address(script_type, network))
    return addresses


class AddressDeriver:
    """
    Derives and memoizes receiving addresses per (key, start_index, count).

    Only successful derivations are cached, so a failure is retried on
    the next call instead of being remembered as an empty list.
    """

    def __init__(self, network: str = "mainnet"):
        self.network = network
        self.cache: dict[tuple[str, int, int], list[str]] = {}

    def derive_addresses(self, extended_key: str, start_index: int, count: int) -> list[str]:
        """Derive addresses for an xpub/ypub/zpub, or return [] on failure."""
        cache_key = (extended_key, start_index, count)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            key = parse_extended_key(extended_key)
            addresses = derive(key, script_type_for(extended_key), start_index, count, self.network)
        except (DecodeError, DerivationError) as e:
            logger.error(f"Error deriving addresses from extended key: {e}")
            return []

        if SENSITIVE_LOGGING:
            for offset, address in enumerate(addresses):
                logger.debug(f"Derived address {start_index + offset}: {address}")

        self.cache[cache_key] = addresses
        return addresses

    def clear(self) -> None:
        self.cache.clear()
