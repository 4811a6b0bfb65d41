"""
Extended public key parsing and version normalization.

Wallets export BIP49/BIP84 account keys with SLIP-0132 prefixes
(ypub/zpub). The key material is identical to an xpub; only the
4-byte version differs, so normalization is a version rewrite.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from panopticon.constants import (
    EXTENDED_KEY_LENGTH,
    XPUB_VERSION,
)
from panopticon.crypto import base58check_decode, base58check_encode
from panopticon.errors import DecodeError, DerivationError

EXTENDED_KEY_PREFIXES = ("xpub", "ypub", "zpub")


class ScriptType(str, Enum):
    LEGACY = "p2pkh"
    COMPAT_SEGWIT = "p2sh-p2wpkh"
    NATIVE_SEGWIT = "p2wpkh"


SCRIPT_TYPE_LABELS: dict[ScriptType, str] = {
    ScriptType.NATIVE_SEGWIT: "Native SegWit HD Wallet (BIP84)",
    ScriptType.COMPAT_SEGWIT: "Compatible SegWit HD Wallet (BIP49)",
    ScriptType.LEGACY: "Legacy HD Wallet (BIP44)",
}


@dataclass(frozen=True)
class ExtendedKey:
    """Parsed BIP32 extended public key (checksum already verified)."""

    version: bytes
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    public_key: bytes

    @classmethod
    def from_bytes(cls, raw: bytes) -> ExtendedKey:
        """
        Parse a 78-byte serialized extended key.

        Raises:
            DerivationError: If the structure is not a valid extended public key
        """
        if len(raw) != EXTENDED_KEY_LENGTH:
            raise DerivationError(
                f"Extended key must be {EXTENDED_KEY_LENGTH} bytes, got {len(raw)}"
            )

        public_key = raw[45:78]
        if public_key[0] not in (0x02, 0x03):
            raise DerivationError("Extended key does not hold a compressed public key")

        return cls(
            version=raw[0:4],
            depth=raw[4],
            parent_fingerprint=raw[5:9],
            child_number=int.from_bytes(raw[9:13], "big"),
            chain_code=raw[13:45],
            public_key=public_key,
        )

    def to_bytes(self) -> bytes:
        return (
            self.version
            + bytes([self.depth])
            + self.parent_fingerprint
            + self.child_number.to_bytes(4, "big")
            + self.chain_code
            + self.public_key
        )

    def encode(self) -> str:
        return base58check_encode(self.to_bytes())


def is_extended_key(text: str) -> bool:
    """Check whether a string looks like an xpub/ypub/zpub."""
    return text.startswith(EXTENDED_KEY_PREFIXES)


def script_type_for(text: str) -> ScriptType:
    """Script type declared by the key's prefix (anything else is treated as legacy)."""
    if text.startswith("zpub"):
        return ScriptType.NATIVE_SEGWIT
    if text.startswith("ypub"):
        return ScriptType.COMPAT_SEGWIT
    return ScriptType.LEGACY


def label_for(text: str) -> str:
    """Human-readable description of an extended key."""
    if is_extended_key(text):
        return SCRIPT_TYPE_LABELS[script_type_for(text)]
    return "HD Wallet"


def decode_extended_key(text: str) -> bytes:
    """
    Decode an extended key string into its 78-byte payload.

    Raises:
        DecodeError: On bad Base58, bad checksum or wrong length
    """
    raw = base58check_decode(text.strip())
    if len(raw) != EXTENDED_KEY_LENGTH:
        raise DecodeError(
            f"Extended key payload must be {EXTENDED_KEY_LENGTH} bytes, got {len(raw)}"
        )
    return raw


def retarget(raw: bytes, target_version: bytes) -> bytes:
    """Overwrite the 4-byte version prefix; everything else is preserved."""
    if len(target_version) != 4:
        raise ValueError("Version must be 4 bytes")
    return target_version + raw[4:]


def convert_to_xpub(text: str) -> str:
    """
    Rewrite a ypub/zpub as an xpub carrying the same key material.

    An xpub is returned unchanged. If decoding fails the original string
    is returned; a result equal to a ypub/zpub input means no conversion
    took place.
    """
    if text.startswith("xpub"):
        return text

    try:
        raw = decode_extended_key(text)
    except DecodeError as e:
        logger.warning(f"Could not convert extended key to xpub: {e}")
        return text

    return base58check_encode(retarget(raw, XPUB_VERSION))


def parse_extended_key(text: str) -> ExtendedKey:
    """
    Normalize and parse an extended key string.

    Raises:
        DecodeError: If the string is not valid Base58Check
        DerivationError: If the payload is not a valid extended public key
    """
    # convert_to_xpub swallows decode failures, so validate the input first
    decode_extended_key(text)
    return ExtendedKey.from_bytes(decode_extended_key(convert_to_xpub(text)))


def import_extended_key(text: str) -> ExtendedKey | None:
    """Parse an extended key, returning None on failure."""
    try:
        return parse_extended_key(text)
    except (DecodeError, DerivationError) as e:
        logger.error(f"Error importing extended public key: {e}")
        return None
