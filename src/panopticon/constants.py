"""
Bitcoin and Electrum protocol constants.

Extended key version bytes follow SLIP-0132:
- xpub: BIP44 legacy (P2PKH)
- ypub: BIP49 P2SH-wrapped SegWit (P2SH-P2WPKH)
- zpub: BIP84 native SegWit (P2WPKH)
"""

from __future__ import annotations

import os

# Log addresses, scripthashes and wire payloads (privacy-sensitive)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")

# Extended public key version prefixes (mainnet)
XPUB_VERSION = bytes.fromhex("0488B21E")
YPUB_VERSION = bytes.fromhex("049D7CB2")
ZPUB_VERSION = bytes.fromhex("04B24746")

# Serialized extended key: version(4) depth(1) fingerprint(4) child(4) chain(32) key(33)
EXTENDED_KEY_LENGTH = 78

# First hardened BIP32 child index
HARDENED_OFFSET = 0x80000000

# Address version bytes (mainnet)
P2PKH_VERSION = 0x00
P2SH_VERSION = 0x05

SATS_PER_BTC = 100_000_000

# Electrum wire protocol
ELECTRUM_METHOD_BALANCE = "blockchain.scripthash.get_balance"
ELECTRUM_METHOD_HISTORY = "blockchain.scripthash.get_history"
ELECTRUM_REQUEST_ID = 1
ELECTRUM_READ_CHUNK = 4096

# Read timeout for Electrum sockets (seconds)
DEFAULT_SOCKET_TIMEOUT = 30.0

# Exchange rate cache lifetime: 15 minutes
DEFAULT_RATE_TTL_SECONDS = 15 * 60

DEFAULT_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd"
DEFAULT_PRICE_TIMEOUT = 10.0
