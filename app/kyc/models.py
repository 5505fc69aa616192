"""Attestation candidate models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from app.kyc.api_models import AttestationView


class RawStatus(str, Enum):
    """Lifecycle flag stored inside the attestation record itself.

    Independent of time-based expiry; the authoritative status comes from
    the ledger's get_effective_status (see EffectiveStatus).
    """
    ACTIVE = "Active"
    REVOKED = "Revoked"


@dataclass(frozen=True)
class CandidateAttestation:
    """One attestation record found for a subject.

    Attributes:
        object_id: Ledger object id of the record.
        issuer: Address that created the record.
        recipient: Address the record was issued to.
        current_owner: Address currently holding the record.
        issued_at: Issuance time (UTC).
        expires_at: Expiry time (UTC), None for records that never expire.
        raw_status: The record's stored Active/Revoked flag.
        version: Object version, needed to reference the object in a call.
        digest: Object digest (base58), needed with version.
    """
    object_id: str
    issuer: str
    recipient: str
    current_owner: Optional[str]
    issued_at: datetime
    expires_at: Optional[datetime]
    raw_status: RawStatus
    version: Optional[int] = None
    digest: Optional[str] = None

    def to_view(self) -> AttestationView:
        return AttestationView(
            object_id=self.object_id,
            issuer=self.issuer,
            recipient=self.recipient,
            current_owner=self.current_owner,
            issued_at=self.issued_at,
            expires_at=self.expires_at,
            status_raw=self.raw_status.value,
        )
