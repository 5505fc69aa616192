"""KYC attestation verification.

Components:
- ledger: JSON-RPC client, transaction encoding, status decoding
- extractor: raw ledger record -> CandidateAttestation
- issuer_cache: time-bounded trusted issuer set (single-flight refresh)
- reconciler: per-candidate evaluation and priority merge
- service: facade used by the HTTP and CLI front doors

Usage:
    from app.kyc import get_verification_service

    result = await get_verification_service().verify("0xfaac...")
"""

from .api_models import (
    AttestationView,
    STATUS_PRIORITY,
    VerificationResult,
    VerificationStatus,
    outranks,
    priority,
)
from .exceptions import (
    AuthorizationCacheError,
    DecodeError,
    EvaluationError,
    InvalidAddressError,
    KycError,
    LedgerError,
    TransportError,
)
from .extractor import extract_candidate
from .issuer_cache import CacheState, IssuerAuthorizationCache
from .models import CandidateAttestation, RawStatus
from .reconciler import AttestationStatusReconciler, merge, merge_all
from .service import VerificationService, get_verification_service, reset_verification_service

__all__ = [
    # Models
    "AttestationView",
    "CandidateAttestation",
    "RawStatus",
    "STATUS_PRIORITY",
    "VerificationResult",
    "VerificationStatus",
    "outranks",
    "priority",
    # Exceptions
    "AuthorizationCacheError",
    "DecodeError",
    "EvaluationError",
    "InvalidAddressError",
    "KycError",
    "LedgerError",
    "TransportError",
    # Components
    "extract_candidate",
    "CacheState",
    "IssuerAuthorizationCache",
    "AttestationStatusReconciler",
    "merge",
    "merge_all",
    "VerificationService",
    "get_verification_service",
    "reset_verification_service",
]
