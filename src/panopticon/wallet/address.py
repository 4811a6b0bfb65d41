"""
Bitcoin address generation and Electrum scripthash utilities.
"""

from __future__ import annotations

from panopticon.constants import P2PKH_VERSION, P2SH_VERSION
from panopticon.crypto import base58check_decode, base58check_encode, hash160, sha256
from panopticon.errors import AddressError, DecodeError

BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2BC830A3

# network -> (bech32 hrp, p2pkh version, p2sh version)
NETWORK_PARAMS: dict[str, tuple[str, int, int]] = {
    "mainnet": ("bc", P2PKH_VERSION, P2SH_VERSION),
    "testnet": ("tb", 0x6F, 0xC4),
    "signet": ("tb", 0x6F, 0xC4),
    "regtest": ("bcrt", 0x6F, 0xC4),
}


def _network_params(network: str) -> tuple[str, int, int]:
    try:
        return NETWORK_PARAMS[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}") from None


def bech32_polymod(values: list[int]) -> int:
    """Bech32 checksum polymod"""
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= gen[i] if ((b >> i) & 1) else 0
    return chk


def bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP for bech32"""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: list[int], const: int = BECH32_CONST) -> list[int]:
    """Create bech32 (or bech32m) checksum"""
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ const
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_encode(hrp: str, data: list[int], const: int = BECH32_CONST) -> str:
    """Encode bech32 string"""
    combined = data + bech32_create_checksum(hrp, data, const)
    return hrp + "1" + "".join([BECH32_CHARSET[d] for d in combined])


def bech32_decode(text: str) -> tuple[str, list[int], int]:
    """
    Decode a bech32/bech32m string.

    Returns:
        (hrp, data without checksum, checksum constant)

    Raises:
        AddressError: On mixed case, bad characters, bad length or checksum
    """
    if text.lower() != text and text.upper() != text:
        raise AddressError("Mixed-case bech32 string")
    text = text.lower()

    pos = text.rfind("1")
    if pos < 1 or pos + 7 > len(text) or len(text) > 90:
        raise AddressError("Invalid bech32 separator position or length")

    hrp = text[:pos]
    try:
        data = [BECH32_CHARSET.index(c) for c in text[pos + 1 :]]
    except ValueError:
        raise AddressError("Invalid bech32 character") from None

    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise AddressError("Invalid bech32 checksum")

    return hrp, data[:-6], const


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or (value >> frombits):
            raise ValueError("Invalid value for bit conversion")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid bits")

    return ret


def pubkey_to_p2pkh_address(pubkey: bytes, network: str = "mainnet") -> str:
    """Convert compressed public key to legacy P2PKH address (BIP44)."""
    _, p2pkh_version, _ = _network_params(network)
    return base58check_encode(bytes([p2pkh_version]) + hash160(pubkey))


def pubkey_to_p2wpkh_script(pubkey: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def pubkey_to_p2sh_p2wpkh_address(pubkey: bytes, network: str = "mainnet") -> str:
    """
    Convert compressed public key to P2SH-wrapped P2WPKH address (BIP49).

    The P2WPKH witness program becomes the redeem script whose HASH160
    is committed to by the P2SH output.
    """
    _, _, p2sh_version = _network_params(network)
    redeem_script = pubkey_to_p2wpkh_script(pubkey)
    return base58check_encode(bytes([p2sh_version]) + hash160(redeem_script))


def pubkey_to_p2wpkh_address(pubkey: bytes, network: str = "mainnet") -> str:
    """
    Convert compressed public key to P2WPKH (native segwit) address.
    BIP173 bech32 encoding.
    """
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")

    hrp, _, _ = _network_params(network)

    witness_version = 0
    witness_program = convertbits(hash160(pubkey), 8, 5)

    return bech32_encode(hrp, [witness_version] + witness_program)


def _segwit_scriptpubkey(address: str, expected_hrp: str) -> bytes:
    hrp, data, const = bech32_decode(address)
    if hrp != expected_hrp:
        raise AddressError(f"Address HRP {hrp!r} does not match network HRP {expected_hrp!r}")
    if not data:
        raise AddressError("Empty witness data")

    witness_version = data[0]
    if witness_version > 16:
        raise AddressError(f"Invalid witness version: {witness_version}")

    # BIP350: v0 uses bech32, v1+ uses bech32m
    expected_const = BECH32_CONST if witness_version == 0 else BECH32M_CONST
    if const != expected_const:
        raise AddressError("Wrong checksum variant for witness version")

    try:
        program = bytes(convertbits(data[1:], 5, 8, pad=False))
    except ValueError as e:
        raise AddressError(f"Invalid witness program padding: {e}") from e

    if not 2 <= len(program) <= 40:
        raise AddressError(f"Invalid witness program length: {len(program)}")
    if witness_version == 0 and len(program) not in (20, 32):
        raise AddressError(f"Invalid v0 witness program length: {len(program)}")

    op_version = 0x00 if witness_version == 0 else 0x50 + witness_version
    return bytes([op_version, len(program)]) + program


def address_to_scriptpubkey(address: str, network: str = "mainnet") -> bytes:
    """
    Build the canonical output script for an address.

    - P2PKH:  OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG
    - P2SH:   OP_HASH160 <20> OP_EQUAL
    - SegWit: OP_n <program>

    Raises:
        AddressError: If the address cannot be parsed for the given network
    """
    hrp, p2pkh_version, p2sh_version = _network_params(network)

    if address.lower().startswith(hrp + "1"):
        return _segwit_scriptpubkey(address, hrp)

    try:
        payload = base58check_decode(address)
    except DecodeError as e:
        raise AddressError(f"Invalid Base58 address: {e}") from e

    if len(payload) != 21:
        raise AddressError(f"Invalid Base58 address payload length: {len(payload)}")

    version, h160 = payload[0], payload[1:]
    if version == p2pkh_version:
        return bytes([0x76, 0xA9, 0x14]) + h160 + bytes([0x88, 0xAC])
    if version == p2sh_version:
        return bytes([0xA9, 0x14]) + h160 + bytes([0x87])

    raise AddressError(f"Unknown address version byte: 0x{version:02x}")


def scriptpubkey_to_scripthash(script: bytes) -> str:
    """SHA256 of the script, byte-reversed, lowercase hex (Electrum scripthash)."""
    return sha256(script)[::-1].hex()


def address_to_scripthash(address: str, network: str = "mainnet") -> str:
    """
    Convert an address to its Electrum protocol scripthash.

    Raises:
        AddressError: If the address cannot be parsed
    """
    return scriptpubkey_to_scripthash(address_to_scriptpubkey(address, network))
