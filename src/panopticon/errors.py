"""
Exception hierarchy for panopticon.

Lower layers raise these; the service boundary logs them and
returns None or an empty list to the caller.
"""

from __future__ import annotations


class PanopticonError(Exception):
    pass


class DecodeError(PanopticonError):
    """Malformed Base58, bad checksum or wrong payload length."""


class DerivationError(PanopticonError):
    """Malformed extended key structure or an index that cannot be derived publicly."""


class AddressError(PanopticonError):
    """Address could not be parsed into an output script."""


class ElectrumError(PanopticonError):
    pass


class ElectrumConnectionError(ElectrumError):
    pass


class ElectrumTimeoutError(ElectrumError):
    pass


class FramingError(ElectrumError):
    """Stream ended before a complete JSON document was received."""


class ProtocolError(ElectrumError):
    """Response has no usable result."""
