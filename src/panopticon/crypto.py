"""
Hash primitives and Base58Check encoding.
"""

from __future__ import annotations

import hashlib

from panopticon.errors import DecodeError

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE58_INDEX = {char: index for index, char in enumerate(BASE58_ALPHABET)}
CHECKSUM_LENGTH = 4


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def base58_encode(data: bytes) -> str:
    num = int.from_bytes(data, "big")

    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    for byte in data:
        if byte == 0:
            result = BASE58_ALPHABET[0] + result
        else:
            break

    return result


def base58_decode(text: str) -> bytes:
    """
    Decode a Base58 string to bytes.

    Leading '1' characters map to leading zero bytes.

    Raises:
        DecodeError: If the string is empty or contains a non-Base58 character
    """
    if not text:
        raise DecodeError("Empty Base58 string")

    num = 0
    for char in text:
        try:
            num = num * 58 + BASE58_INDEX[char]
        except KeyError:
            raise DecodeError(f"Invalid Base58 character: {char!r}") from None

    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""

    leading_zeros = len(text) - len(text.lstrip(BASE58_ALPHABET[0]))
    return b"\x00" * leading_zeros + body


def base58check_encode(payload: bytes) -> str:
    """Base58 encode payload with a 4-byte double-SHA256 checksum appended."""
    return base58_encode(payload + double_sha256(payload)[:CHECKSUM_LENGTH])


def base58check_decode(text: str) -> bytes:
    """
    Decode a Base58Check string and verify its checksum.

    Returns:
        Payload with the checksum stripped

    Raises:
        DecodeError: On invalid characters, short input or checksum mismatch
    """
    raw = base58_decode(text)
    if len(raw) <= CHECKSUM_LENGTH:
        raise DecodeError(f"Base58Check data too short: {len(raw)} bytes")

    payload, checksum = raw[:-CHECKSUM_LENGTH], raw[-CHECKSUM_LENGTH:]
    if double_sha256(payload)[:CHECKSUM_LENGTH] != checksum:
        raise DecodeError("Base58Check checksum mismatch")

    return payload
