"""Attestation status reconciliation.

A subject may hold any number of attestation records. Each one is taken
through

    extract -> ownership check -> issuer check -> status query -> outcome

and the per-candidate outcomes are merged into a single VerificationResult:

- Verified ends the scan immediately; one live, correctly-owned attestation
  is sufficient.
- Every other outcome is merged by STATUS_PRIORITY with a strict ">" so the
  most informative negative result survives and ties keep the earlier one.
- Only a failure to enumerate the subject's records is fatal. A failing
  status query contributes an Error outcome for that candidate and the scan
  continues.
- If nothing outranks the initial NotVerified but a status query failed,
  the first such Error is reported. An unresolved candidate is not evidence
  of absence.

Candidates can be resolved one at a time or concurrently. The concurrent
path merges results in enumeration order once they are in, so completion
order never changes the status. When several candidates are Verified it
may attach a later one than the sequential scan would.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from app.core import config
from app.kyc.address import normalize_address, same_address
from app.kyc.api_models import VerificationResult, VerificationStatus, outranks
from app.kyc.exceptions import AuthorizationCacheError, LedgerError
from app.kyc.extractor import extract_candidate
from app.kyc.issuer_cache import IssuerAuthorizationCache
from app.kyc.ledger.client import LedgerClientProtocol, RawRecord
from app.kyc.ledger.status_decoder import EffectiveStatus, decode_effective_status
from app.kyc.models import CandidateAttestation

log = logging.getLogger(__name__)

_STATUS_TO_OUTCOME: Dict[EffectiveStatus, VerificationStatus] = {
    EffectiveStatus.ACTIVE: VerificationStatus.VERIFIED,
    EffectiveStatus.EXPIRED: VerificationStatus.EXPIRED,
    EffectiveStatus.REVOKED: VerificationStatus.REVOKED,
}

NO_CANDIDATES_DETAILS = "No KYC attestations found for this address."
NO_VALID_ATTESTATION_DETAILS = "No valid KYC attestation found from an authorized issuer."


def merge(best: VerificationResult, candidate: VerificationResult) -> VerificationResult:
    """Keep whichever result ranks higher; ties keep best."""
    return candidate if outranks(candidate.status, best.status) else best


def merge_all(
    results: Sequence[VerificationResult],
    initial: Optional[VerificationResult] = None,
) -> VerificationResult:
    """Fold merge over results in the given order."""
    best = initial or not_verified()
    for result in results:
        best = merge(best, result)
    return best


def settle(best: VerificationResult, results: Sequence[VerificationResult]) -> VerificationResult:
    """Final outcome of a scan that found no Verified candidate."""
    if best.status == VerificationStatus.NOT_VERIFIED:
        for result in results:
            if result.status == VerificationStatus.ERROR:
                return result
    return best


def not_verified(details: str = NO_VALID_ATTESTATION_DETAILS) -> VerificationResult:
    return VerificationResult(status=VerificationStatus.NOT_VERIFIED, details=details)


def map_effective_status(status: EffectiveStatus) -> VerificationStatus:
    return _STATUS_TO_OUTCOME[status]


@dataclass
class _Pending:
    """A candidate that passed the local checks and needs a status query."""
    position: int
    candidate: CandidateAttestation


class AttestationStatusReconciler:
    """Combines every candidate attestation of a subject into one result."""

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        issuer_cache: Optional[IssuerAuthorizationCache] = None,
        credential_type: Optional[str] = None,
        status_type: Optional[str] = None,
        concurrent: bool = config.CONCURRENT_STATUS_QUERIES,
    ):
        """Initialize the reconciler.

        Args:
            ledger: Read-only ledger capabilities.
            issuer_cache: Trusted issuer set. None disables the issuer check
                and leaves the ledger's effective status as sole authority.
            credential_type: Attestation struct type (defaults from config).
            status_type: Effective status enum type (defaults from config).
            concurrent: Resolve candidate statuses concurrently.
        """
        self._ledger = ledger
        self._issuer_cache = issuer_cache
        self.credential_type = credential_type or config.attestation_type()
        self.status_type = status_type or config.effective_status_type()
        self.concurrent = concurrent

    async def reconcile(self, subject: str) -> VerificationResult:
        """Verify subject against every attestation record it holds.

        Never raises for ledger failures; an enumeration failure becomes an
        Error result. Cancellation propagates to the caller.
        """
        try:
            records = await self._ledger.list_credential_records(subject, self.credential_type)
        except LedgerError as e:
            log.error(
                f"A fatal error occurred when listing attestations for {subject}: {e}",
                exc_info=True,
                extra={"subject": subject},
            )
            return VerificationResult(
                status=VerificationStatus.ERROR,
                details=f"Ledger error while listing attestations: {e}",
            )

        log.debug(f"Found {len(records)} potential KYC objects.", extra={"subject": subject})
        if not records:
            return not_verified(NO_CANDIDATES_DETAILS)

        trusted = await self._trusted_issuers()

        best = not_verified()
        pending: List[_Pending] = []
        local: Dict[int, VerificationResult] = {}

        for position, record in enumerate(records):
            candidate = extract_candidate(record, self.credential_type)
            if candidate is None:
                continue

            if not same_address(candidate.current_owner, candidate.recipient):
                log.info(
                    f"Attestation {candidate.object_id} owner does not match recipient",
                    extra={"subject": subject, "object_id": candidate.object_id},
                )
                local[position] = self._invalid(candidate)
                continue

            if trusted is not None and normalize_address(candidate.issuer) not in trusted:
                log.info(
                    f"Attestation {candidate.object_id} issuer {candidate.issuer} is not authorized",
                    extra={"subject": subject, "object_id": candidate.object_id},
                )
                continue

            pending.append(_Pending(position, candidate))

        if self.concurrent and len(pending) > 1:
            return await self._resolve_concurrently(pending, local)
        return await self._resolve_sequentially(records, pending, local, best)

    # -------------------------------------------------------------------------
    # Status resolution
    # -------------------------------------------------------------------------

    async def _resolve_sequentially(
        self,
        records: Sequence[RawRecord],
        pending: List[_Pending],
        local: Dict[int, VerificationResult],
        best: VerificationResult,
    ) -> VerificationResult:
        queued = {p.position: p.candidate for p in pending}
        seen: List[VerificationResult] = []
        for position in range(len(records)):
            if position in local:
                best = merge(best, local[position])
                continue
            candidate = queued.get(position)
            if candidate is None:
                continue

            result = await self._resolve(candidate)
            if result.status == VerificationStatus.VERIFIED:
                return result
            seen.append(result)
            best = merge(best, result)
        return settle(best, seen)

    async def _resolve_concurrently(
        self,
        pending: List[_Pending],
        local: Dict[int, VerificationResult],
    ) -> VerificationResult:
        loop = asyncio.get_running_loop()
        tasks = {
            loop.create_task(self._resolve(p.candidate)): p.position
            for p in pending
        }
        resolved: Dict[int, VerificationResult] = {}

        try:
            remaining = set(tasks)
            while remaining:
                done, remaining = await asyncio.wait(
                    remaining, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    resolved[tasks[task]] = task.result()

                verified = sorted(
                    position for position, result in resolved.items()
                    if result.status == VerificationStatus.VERIFIED
                )
                if verified:
                    log.debug(f"Verified candidate found, cancelling {len(remaining)} queries")
                    return resolved[verified[0]]
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        combined = {**local, **resolved}
        ordered = [combined[position] for position in sorted(combined)]
        return settle(merge_all(ordered), ordered)

    async def _resolve(self, candidate: CandidateAttestation) -> VerificationResult:
        """Query the ledger for one candidate; failures become Error results."""
        try:
            value, declared_type = await self._ledger.evaluate_effective_status(
                candidate.object_id,
                version=candidate.version,
                digest=candidate.digest,
            )
            effective = decode_effective_status(value, declared_type, self.status_type)
        except LedgerError as e:
            log.warning(
                f"Failed to get on-chain status for {candidate.object_id}: {e}",
                extra={"object_id": candidate.object_id},
            )
            return VerificationResult(
                status=VerificationStatus.ERROR,
                details=f"Failed to check on-chain status for potential attestation {candidate.object_id}: {e}",
                attestation=candidate.to_view(),
            )

        outcome = map_effective_status(effective)
        log.debug(
            f"Attestation {candidate.object_id} effective status {effective.value}",
            extra={"object_id": candidate.object_id},
        )
        return VerificationResult(
            status=outcome,
            details=_outcome_details(outcome, candidate),
            attestation=candidate.to_view(),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _trusted_issuers(self) -> Optional[FrozenSet[str]]:
        if self._issuer_cache is None:
            return None
        try:
            return await self._issuer_cache.get()
        except AuthorizationCacheError as e:
            log.warning(f"Issuer registry unavailable, relying on ledger status only: {e}")
            return None

    @staticmethod
    def _invalid(candidate: CandidateAttestation) -> VerificationResult:
        return VerificationResult(
            status=VerificationStatus.INVALID,
            details=f"Attestation object {candidate.object_id} owner does not match intended recipient.",
            attestation=candidate.to_view(),
        )


def _outcome_details(outcome: VerificationStatus, candidate: CandidateAttestation) -> str:
    if outcome == VerificationStatus.VERIFIED:
        return f"This user currently has a valid and active KYC attestation ({candidate.object_id})."
    if outcome == VerificationStatus.EXPIRED:
        return f"KYC attestation {candidate.object_id} has expired."
    return f"KYC attestation {candidate.object_id} has been revoked."
