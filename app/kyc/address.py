"""Ledger address utilities.

Addresses are 32-byte values written as 0x-prefixed hex. The ledger accepts
short forms ("0x6") and mixed case, so every comparison in this package
goes through normalize_address first.
"""

import re
from typing import Any, Optional

from app.kyc.exceptions import InvalidAddressError

ADDRESS_BYTES = 32
ADDRESS_HEX_LENGTH = ADDRESS_BYTES * 2

_HEX_BODY = re.compile(r"^[0-9a-f]+$")


def normalize_address(address: str) -> str:
    """Lowercase, strip the 0x prefix and left-pad to 64 hex digits.

    Does not validate; pair with is_valid_address when input is untrusted.
    """
    body = address.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    return "0x" + body.rjust(ADDRESS_HEX_LENGTH, "0")


def is_valid_address(address: Any) -> bool:
    """True when address is a non-empty hex string of at most 32 bytes."""
    if not isinstance(address, str):
        return False
    body = address.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    if not body or len(body) > ADDRESS_HEX_LENGTH:
        return False
    return bool(_HEX_BODY.match(body))


def validate_address(address: Any) -> str:
    """Validate and normalize a subject address.

    Raises:
        InvalidAddressError: If the address is missing or malformed.
    """
    if not address:
        raise InvalidAddressError("Address is missing or empty")
    if not is_valid_address(address):
        raise InvalidAddressError(
            f"Invalid Sui address provided: {str(address)[:80]!r}"
        )
    return normalize_address(address)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two addresses after normalization; None never matches."""
    if not a or not b:
        return False
    if not (is_valid_address(a) and is_valid_address(b)):
        return a == b
    return normalize_address(a) == normalize_address(b)
