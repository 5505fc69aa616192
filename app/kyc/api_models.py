"""
KYC attestation verifier API models.

The wire shape uses camelCase keys (objectId, currentOwner, statusRaw, ...)
so responses are interchangeable with the JavaScript SDK consumers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# =============================================================================
# Verification outcome
# =============================================================================

class VerificationStatus(str, Enum):
    """Closed set of verification outcomes."""
    VERIFIED = "Verified"          # Live, correctly-owned attestation
    EXPIRED = "Expired"            # Ledger reports the attestation expired
    REVOKED = "Revoked"            # Ledger reports the attestation revoked
    INVALID = "Invalid"            # Owner no longer matches intended recipient
    NOT_VERIFIED = "NotVerified"   # No usable attestation found
    ERROR = "Error"                # Could not evaluate


# Total order used when merging per-candidate outcomes.
# A resolved negative (Expired/Revoked) outranks an ambiguous one (Invalid),
# which outranks absence of evidence, which outranks inability to evaluate.
STATUS_PRIORITY: Dict[VerificationStatus, int] = {
    VerificationStatus.VERIFIED: 5,
    VerificationStatus.EXPIRED: 4,
    VerificationStatus.REVOKED: 3,
    VerificationStatus.INVALID: 2,
    VerificationStatus.NOT_VERIFIED: 1,
    VerificationStatus.ERROR: 0,
}


def priority(status: VerificationStatus) -> int:
    """Merge rank of an outcome."""
    return STATUS_PRIORITY[status]


def outranks(candidate: VerificationStatus, current: VerificationStatus) -> bool:
    """True when candidate should replace current during a merge.

    Strictly greater: equal rank keeps the result found first.
    """
    return priority(candidate) > priority(current)


# =============================================================================
# Error codes
# =============================================================================

class ErrorCode:
    """Error code registry for KycError subclasses."""
    # Ledger layer
    LEDGER_TRANSPORT_FAILED = "LEDGER_TRANSPORT_FAILED"
    LEDGER_EVALUATION_FAILED = "LEDGER_EVALUATION_FAILED"
    STATUS_DECODE_FAILED = "STATUS_DECODE_FAILED"

    # Issuer registry
    ISSUER_REGISTRY_UNAVAILABLE = "ISSUER_REGISTRY_UNAVAILABLE"

    # Request layer
    ADDRESS_INVALID = "ADDRESS_INVALID"


# =============================================================================
# Request / response models
# =============================================================================

class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class AttestationView(_WireModel):
    """Attestation details attached to a verification result."""
    object_id: str
    issuer: str
    recipient: str
    current_owner: Optional[str] = None
    issued_at: datetime
    expires_at: Optional[datetime] = None
    status_raw: str  # "Active" | "Revoked", the record's own stored flag


class VerificationResult(_WireModel):
    """Outcome of one verification call. Immutable once built."""
    status: VerificationStatus
    details: str
    attestation: Optional[AttestationView] = None

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict; the attestation key is omitted when absent."""
        data = self.model_dump(mode="json", by_alias=True)
        if data.get("attestation") is None:
            data.pop("attestation", None)
        return data


class VerifyRequest(BaseModel):
    """Request body for /api/kyc/verify.

    address is left untyped so a missing or non-string value reaches the
    handler and gets the usual Error result instead of a 422.
    """
    address: Optional[Any] = None
