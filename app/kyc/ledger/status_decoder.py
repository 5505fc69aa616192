"""Decoder for the effective status returned by get_effective_status.

The Move enum KycEffectiveStatus is returned BCS-encoded. For a fieldless
enum BCS writes only the variant index as a ULEB128 integer; with three
variants that is always a single byte:

    0 -> Active
    1 -> Expired
    2 -> Revoked

Decoding is strict. An unknown index is an error rather than a default,
since defaulting could report an unknown ledger state as Active.
"""

from enum import Enum
from typing import Sequence, Union

from app.kyc.exceptions import DecodeError


class EffectiveStatus(str, Enum):
    """Time- and revocation-aware status computed by the ledger."""
    ACTIVE = "Active"
    EXPIRED = "Expired"
    REVOKED = "Revoked"


_TAGS = (EffectiveStatus.ACTIVE, EffectiveStatus.EXPIRED, EffectiveStatus.REVOKED)


def decode_effective_status(
    value: Union[bytes, Sequence[int]],
    declared_type: str,
    expected_type: str,
) -> EffectiveStatus:
    """Translate a returned enum value into an EffectiveStatus.

    Args:
        value: Raw BCS bytes (the RPC returns them as a list of ints).
        declared_type: Type name reported alongside the value.
        expected_type: Fully qualified KycEffectiveStatus type.

    Returns:
        The decoded EffectiveStatus.

    Raises:
        DecodeError: On type mismatch, empty payload or unknown tag.
    """
    if declared_type != expected_type:
        raise DecodeError(
            f"Unexpected return type {declared_type!r}, expected {expected_type!r}"
        )

    if value is None or len(value) == 0:
        raise DecodeError("Empty value bytes received for status enum")

    tag = value[0]
    if not isinstance(tag, int) or not 0 <= tag < len(_TAGS):
        raise DecodeError(f"Unknown status index {tag!r}")

    return _TAGS[tag]
