"""Candidate extraction from raw ledger object records.

Records come from suix_getOwnedObjects with content, type and owner shown:

    {"data": {
        "objectId": "0x...", "version": "42", "digest": "<base58>",
        "owner": {"AddressOwner": "0x..."},
        "content": {
            "dataType": "moveObject",
            "type": "<package>::core::KycAttestation",
            "fields": {
                "recipient": "0x...", "issuer": "0x...",
                "issuance_timestamp_ms": "1714000000000",
                "expiry_timestamp_ms": "0",
                "status": {"variant": "Active", "fields": {}},
            }}}}

A record that does not have this shape is skipped (None), never raised:
one odd object must not abort verification of the others.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.config import NO_EXPIRY_SENTINEL
from app.kyc.address import is_valid_address, normalize_address
from app.kyc.models import CandidateAttestation, RawStatus

log = logging.getLogger(__name__)

_MAX_DATETIME = datetime.max.replace(tzinfo=timezone.utc)


def extract_candidate(
    record: Dict[str, Any],
    credential_type: str,
) -> Optional[CandidateAttestation]:
    """Project one raw record into a CandidateAttestation.

    Args:
        record: One entry of the owned-objects listing.
        credential_type: Fully qualified attestation struct type.

    Returns:
        The candidate, or None when the record is structurally unusable
        (wrong kind, wrong type, non-address owner, missing fields).
    """
    data = record.get("data") if isinstance(record, dict) else None
    if not isinstance(data, dict):
        log.debug("skip: record has no data")
        return None

    object_id = data.get("objectId")
    content = data.get("content")
    if not object_id or not isinstance(content, dict) or content.get("dataType") != "moveObject":
        log.debug(f"skip: {object_id} is not a move object")
        return None

    if not same_type(content.get("type"), credential_type):
        log.debug(f"skip: {object_id} has type {content.get('type')!r}")
        return None

    # Shared, immutable and object-owned records cannot be personal credentials
    owner = data.get("owner")
    if not isinstance(owner, dict) or not isinstance(owner.get("AddressOwner"), str):
        log.debug(f"skip: {object_id} is not address-owned")
        return None

    fields = content.get("fields")
    if not isinstance(fields, dict):
        log.debug(f"skip: {object_id} has no fields")
        return None

    recipient = fields.get("recipient")
    issuer = fields.get("issuer")
    if not isinstance(recipient, str) or not isinstance(issuer, str):
        log.debug(f"skip: {object_id} lacks recipient/issuer")
        return None

    issued_ms = _parse_ms(fields.get("issuance_timestamp_ms"))
    expiry_ms = _parse_ms(fields.get("expiry_timestamp_ms"))
    raw_status = _parse_raw_status(fields.get("status"))
    if issued_ms is None or expiry_ms is None or raw_status is None:
        log.debug(f"skip: {object_id} has malformed timestamps or status")
        return None

    issued_at = _ms_to_datetime(issued_ms)
    expires_at = None if expiry_ms == NO_EXPIRY_SENTINEL else _ms_to_datetime(expiry_ms)

    version = data.get("version")
    try:
        version = int(version) if version is not None else None
    except (TypeError, ValueError):
        version = None

    return CandidateAttestation(
        object_id=object_id,
        issuer=issuer,
        recipient=recipient,
        current_owner=owner["AddressOwner"],
        issued_at=issued_at,
        expires_at=expires_at,
        raw_status=raw_status,
        version=version,
        digest=data.get("digest"),
    )


def same_type(declared: Any, expected: str) -> bool:
    """Compare move type strings with the package address normalized."""
    if not isinstance(declared, str):
        return False
    return _normalize_type(declared) == _normalize_type(expected)


def _normalize_type(type_name: str) -> str:
    package, sep, rest = type_name.partition("::")
    if sep and is_valid_address(package):
        return f"{normalize_address(package)}::{rest}"
    return type_name


def _parse_ms(value: Any) -> Optional[int]:
    # u64 values are rendered as decimal strings
    if isinstance(value, bool):
        return None
    try:
        ms = int(value)
    except (TypeError, ValueError):
        return None
    return ms if ms >= 0 else None


def _ms_to_datetime(ms: int) -> datetime:
    # Move code often stores u64::MAX as "never"; clamp what datetime cannot hold
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return _MAX_DATETIME


def _parse_raw_status(value: Any) -> Optional[RawStatus]:
    """Read the stored status enum.

    Accepts the enum rendering ({"variant": "Active"}), the older
    struct rendering ({"fields": {"name": "Active"}}) and a bare string.
    """
    name = None
    if isinstance(value, str):
        name = value
    elif isinstance(value, dict):
        name = value.get("variant")
        if name is None:
            name = (value.get("fields") or {}).get("name")
    try:
        return RawStatus(name)
    except ValueError:
        return None
