"""
Watch-only HD wallet primitives: extended keys, BIP32 public derivation,
addresses and Electrum scripthashes.
"""
