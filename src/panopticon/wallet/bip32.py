"""
BIP32 public HD key derivation for watch-only wallets.
Only non-hardened (CKDpub) derivation is possible without private keys.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PublicKey

from panopticon.constants import HARDENED_OFFSET
from panopticon.crypto import hash160
from panopticon.errors import DerivationError
from panopticon.wallet.extended_key import ExtendedKey, ScriptType

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


class HDPublicKey:
    """
    Hierarchical Deterministic public key.
    Implements BIP32 public child derivation.
    """

    def __init__(
        self,
        public_key: PublicKey,
        chain_code: bytes,
        depth: int = 0,
        parent_fingerprint: bytes = b"\x00\x00\x00\x00",
        child_number: int = 0,
    ):
        self._public_key = public_key
        self.chain_code = chain_code
        self.depth = depth
        self.parent_fingerprint = parent_fingerprint
        self.child_number = child_number

    @property
    def public_key(self) -> PublicKey:
        """Return the coincurve PublicKey instance."""
        return self._public_key

    @classmethod
    def from_extended_key(cls, key: ExtendedKey) -> HDPublicKey:
        """Create a node from a parsed extended public key."""
        try:
            public_key = PublicKey(key.public_key)
        except ValueError as e:
            raise DerivationError(f"Invalid public key in extended key: {e}") from e

        return cls(
            public_key,
            key.chain_code,
            depth=key.depth,
            parent_fingerprint=key.parent_fingerprint,
            child_number=key.child_number,
        )

    @property
    def fingerprint(self) -> bytes:
        """First 4 bytes of HASH160 of the compressed public key."""
        return hash160(self.get_public_key_bytes())[:4]

    def derive_child(self, index: int) -> HDPublicKey:
        """
        Derive the non-hardened child at the given index.

        Raises:
            DerivationError: For hardened or negative indices, or an invalid child
        """
        if index < 0:
            raise DerivationError(f"Negative child index: {index}")
        if index >= HARDENED_OFFSET:
            raise DerivationError(f"Cannot derive hardened child {index} from a public key")

        data = self.get_public_key_bytes() + index.to_bytes(4, "big")
        hmac_result = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        key_offset = hmac_result[:32]
        child_chain = hmac_result[32:]

        if int.from_bytes(key_offset, "big") >= SECP256K1_N:
            raise DerivationError(f"Invalid child key at index {index}")

        try:
            child_public_key = self._public_key.add(key_offset)
        except ValueError as e:
            # tweak produced the point at infinity
            raise DerivationError(f"Invalid child key at index {index}: {e}") from e

        return HDPublicKey(
            child_public_key,
            child_chain,
            depth=self.depth + 1,
            parent_fingerprint=self.fingerprint,
            child_number=index,
        )

    def derive(self, path: str) -> HDPublicKey:
        """
        Derive a descendant from relative path notation (e.g., "m/0/5").
        Hardened steps are rejected.
        """
        if not path.startswith("m"):
            raise DerivationError("Path must start with 'm'")

        key = self
        for part in path.split("/")[1:]:
            if not part:
                continue
            if part.endswith("'") or part.endswith("h"):
                raise DerivationError(f"Hardened path component {part!r} needs a private key")
            try:
                index = int(part)
            except ValueError:
                raise DerivationError(f"Invalid path component: {part!r}") from None
            key = key.derive_child(index)

        return key

    def get_public_key_bytes(self, compressed: bool = True) -> bytes:
        """Get public key bytes"""
        return self._public_key.format(compressed=compressed)

    def get_address(self, script_type: ScriptType, network: str = "mainnet") -> str:
        """Get the address of the given script type for this key"""
        from panopticon.wallet.address import (
            pubkey_to_p2pkh_address,
            pubkey_to_p2sh_p2wpkh_address,
            pubkey_to_p2wpkh_address,
        )

        pubkey = self.get_public_key_bytes(compressed=True)
        if script_type == ScriptType.NATIVE_SEGWIT:
            return pubkey_to_p2wpkh_address(pubkey, network)
        if script_type == ScriptType.COMPAT_SEGWIT:
            return pubkey_to_p2sh_p2wpkh_address(pubkey, network)
        return pubkey_to_p2pkh_address(pubkey, network)

    def to_extended_key(self, version: bytes) -> ExtendedKey:
        return ExtendedKey(
            version=version,
            depth=self.depth,
            parent_fingerprint=self.parent_fingerprint,
            child_number=self.child_number,
            chain_code=self.chain_code,
            public_key=self.get_public_key_bytes(),
        )
