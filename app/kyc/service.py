"""Verification service facade.

The only entry point front doors (HTTP, CLI, direct callers) use. It
validates the subject address, applies the request timeout and converts
every failure into a VerificationResult; nothing raises across this
boundary except the caller's own cancellation.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from app.core import config
from app.kyc.address import validate_address
from app.kyc.api_models import VerificationResult, VerificationStatus
from app.kyc.exceptions import InvalidAddressError
from app.kyc.issuer_cache import IssuerAuthorizationCache
from app.kyc.ledger.client import LedgerClientProtocol, get_ledger_client
from app.kyc.reconciler import AttestationStatusReconciler

log = logging.getLogger(__name__)


def error_result(details: str) -> VerificationResult:
    return VerificationResult(status=VerificationStatus.ERROR, details=details)


class VerificationService:
    """Wraps the reconciler with validation, timeout and error mapping."""

    def __init__(
        self,
        reconciler: AttestationStatusReconciler,
        issuer_cache: Optional[IssuerAuthorizationCache] = None,
        timeout_seconds: Optional[float] = config.VERIFY_TIMEOUT_SECONDS,
    ):
        self._reconciler = reconciler
        self._issuer_cache = issuer_cache
        self._timeout = timeout_seconds

    @classmethod
    def from_ledger(
        cls,
        ledger: LedgerClientProtocol,
        enforce_issuer_registry: bool = config.ENFORCE_ISSUER_REGISTRY,
        issuer_cache_ttl_seconds: float = config.ISSUER_CACHE_TTL_SECONDS,
        concurrent: bool = config.CONCURRENT_STATUS_QUERIES,
        timeout_seconds: Optional[float] = config.VERIFY_TIMEOUT_SECONDS,
    ) -> "VerificationService":
        """Wire a service, its reconciler and issuer cache to one ledger."""
        issuer_cache = None
        if enforce_issuer_registry:
            issuer_cache = IssuerAuthorizationCache(
                ledger.fetch_issuer_registry,
                ttl_seconds=issuer_cache_ttl_seconds,
            )
        reconciler = AttestationStatusReconciler(
            ledger,
            issuer_cache=issuer_cache,
            concurrent=concurrent,
        )
        return cls(reconciler, issuer_cache=issuer_cache, timeout_seconds=timeout_seconds)

    @property
    def issuer_cache(self) -> Optional[IssuerAuthorizationCache]:
        return self._issuer_cache

    async def verify(self, address: Any) -> VerificationResult:
        """Verify the KYC status of an address.

        Returns:
            A VerificationResult; Error for malformed input, timeouts and
            unexpected failures.
        """
        try:
            subject = validate_address(address)
        except InvalidAddressError as e:
            log.info(f"Rejected verification request: {e.message}")
            return error_result(
                f"{e.message}. Please check the address and try again."
            )

        try:
            if self._timeout:
                result = await asyncio.wait_for(
                    self._reconciler.reconcile(subject), timeout=self._timeout
                )
            else:
                result = await self._reconciler.reconcile(subject)
        except asyncio.TimeoutError:
            log.warning(
                f"Verification of {subject} timed out after {self._timeout}s",
                extra={"subject": subject},
            )
            return error_result(f"Verification timed out after {self._timeout} seconds")
        except Exception as e:
            log.error(
                f"A fatal error occurred when verifying {subject}",
                exc_info=True,
                extra={"subject": subject},
            )
            return error_result(f"Internal Server Error: {e}")

        log.info(
            f"verification_complete status={result.status.value}",
            extra={"subject": subject},
        )
        return result

    def describe(self) -> Dict[str, Any]:
        """Operator view of the service wiring."""
        return {
            "timeout_seconds": self._timeout,
            "concurrent_status_queries": self._reconciler.concurrent,
            "credential_type": self._reconciler.credential_type,
            "issuer_cache": self._issuer_cache.describe() if self._issuer_cache else None,
        }


# Singleton instance
_verification_service: Optional[VerificationService] = None


def get_verification_service() -> VerificationService:
    """Get or create the service singleton backed by the configured ledger."""
    global _verification_service
    if _verification_service is None:
        _verification_service = VerificationService.from_ledger(get_ledger_client())
    return _verification_service


def reset_verification_service() -> None:
    """Reset the singleton (tests)."""
    global _verification_service
    _verification_service = None
