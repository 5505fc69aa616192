"""
Sui JSON-RPC client for attestation lookups.

Read-only by construction: objects are listed with suix_getOwnedObjects and
statuses are evaluated with sui_devInspectTransactionBlock, which executes a
move call against current state without signatures, gas or side effects.

Every failure leaves this module as TransportError or EvaluationError so
callers can decide whether it is fatal (enumeration) or per-candidate
(status evaluation).
"""

import itertools
import logging
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

import httpx

from app.core import config
from app.kyc.address import is_valid_address, normalize_address
from app.kyc.exceptions import EvaluationError, TransportError
from app.kyc.ledger.bcs import OwnedObjectInput, SharedObjectInput, build_single_call

log = logging.getLogger(__name__)

RawRecord = Dict[str, Any]

# (value bytes, declared type name) as returned by devInspect
StatusValue = Tuple[List[int], str]

# Registry fields that may hold the authorized issuer list
_REGISTRY_ISSUER_FIELDS = ("issuers", "authorized_issuers")


class LedgerClientProtocol(Protocol):
    """Capabilities the reconciler and issuer cache need from a ledger."""

    async def list_credential_records(
        self, subject: str, credential_type: str
    ) -> Sequence[RawRecord]:
        ...

    async def evaluate_effective_status(
        self,
        object_id: str,
        version: Optional[int] = None,
        digest: Optional[str] = None,
    ) -> StatusValue:
        ...

    async def fetch_issuer_registry(self) -> FrozenSet[str]:
        ...


class SuiLedgerClient:
    """JSON-RPC client for a Sui fullnode.

    A new httpx.AsyncClient is opened per call, so one instance can be
    shared freely between concurrent requests.
    """

    def __init__(
        self,
        rpc_url: str = config.LEDGER_RPC_URL,
        package_id: str = config.PACKAGE_ID,
        issuer_registry_id: str = config.ISSUER_REGISTRY_ID,
        timeout: float = config.LEDGER_TIMEOUT_SECONDS,
        page_limit: int = config.LEDGER_PAGE_LIMIT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            rpc_url: Fullnode JSON-RPC endpoint.
            package_id: Package that defines the attestation contract.
            issuer_registry_id: Object id of the shared IssuerRegistry.
            timeout: Per-request HTTP timeout in seconds.
            page_limit: Page size for owned-object enumeration.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.rpc_url = rpc_url
        self.package_id = package_id
        self.issuer_registry_id = issuer_registry_id
        self.timeout = timeout
        self.page_limit = page_limit
        self._transport = transport
        self._ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def list_credential_records(
        self, subject: str, credential_type: str
    ) -> List[RawRecord]:
        """List every object of credential_type owned by subject.

        Follows pagination until the fullnode reports no further pages.

        Raises:
            TransportError: On any RPC failure.
        """
        records: List[RawRecord] = []
        cursor: Optional[str] = None
        query = {
            "filter": {"StructType": credential_type},
            "options": {"showContent": True, "showType": True, "showOwner": True},
        }

        while True:
            page = await self._rpc(
                "suix_getOwnedObjects",
                [subject, query, cursor, self.page_limit],
            )
            if not isinstance(page, dict) or not isinstance(page.get("data"), list):
                raise TransportError("Malformed suix_getOwnedObjects response")

            records.extend(page["data"])
            next_cursor = page.get("nextCursor")
            if not page.get("hasNextPage") or not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor

        log.debug(f"list_credential_records: owner={subject[:12]}... found={len(records)}")
        return records

    async def evaluate_effective_status(
        self,
        object_id: str,
        version: Optional[int] = None,
        digest: Optional[str] = None,
    ) -> StatusValue:
        """Run get_effective_status(attestation, clock) without side effects.

        Args:
            object_id: Attestation object id.
            version: Object version; looked up when absent.
            digest: Object digest; looked up when absent.

        Returns:
            (value_bytes, declared_type) of the first return value.

        Raises:
            TransportError: RPC failure or unreadable response.
            EvaluationError: Execution failed or produced no return value.
        """
        if version is None or digest is None:
            version, digest = await self._object_ref(object_id)

        target = f"{self.package_id}::{config.EFFECTIVE_STATUS_FUNCTION}"
        try:
            tx_bytes = build_single_call(
                target,
                [
                    OwnedObjectInput(object_id, version, digest),
                    SharedObjectInput(
                        config.CLOCK_OBJECT_ID,
                        config.CLOCK_INITIAL_SHARED_VERSION,
                        mutable=False,
                    ),
                ],
            )
        except ValueError as e:
            raise EvaluationError(f"Cannot build status query for {object_id}: {e}") from e

        result = await self._rpc(
            "sui_devInspectTransactionBlock",
            [config.ZERO_ADDRESS, tx_bytes, None, None],
        )
        if not isinstance(result, dict):
            raise TransportError("Malformed sui_devInspectTransactionBlock response")

        effects = result.get("effects")
        status = effects.get("status") if isinstance(effects, dict) else None
        if not isinstance(status, dict):
            raise TransportError("Malformed sui_devInspectTransactionBlock effects")
        if status.get("status") != "success":
            raise EvaluationError(
                f"On-chain status check failed: {status.get('error') or result.get('error') or 'Unknown Execution Error'}"
            )

        try:
            return_value = result["results"][0]["returnValues"][0]
        except (KeyError, IndexError, TypeError):
            raise EvaluationError("Could not parse return value from on-chain status check")

        if not isinstance(return_value, (list, tuple)) or len(return_value) != 2:
            raise EvaluationError("Could not parse return value from on-chain status check")

        value_bytes, type_name = return_value
        if not isinstance(type_name, str) or not _is_byte_list(value_bytes):
            raise TransportError("Malformed sui_devInspectTransactionBlock return value")
        return list(value_bytes), type_name

    async def fetch_issuer_registry(self) -> FrozenSet[str]:
        """Read the set of authorized issuer addresses from the registry object.

        Raises:
            TransportError: RPC failure or a registry without a readable list.
        """
        result = await self._rpc(
            "sui_getObject",
            [self.issuer_registry_id, {"showContent": True, "showType": True}],
        )
        data = (result or {}).get("data") if isinstance(result, dict) else None
        content = (data or {}).get("content") or {}
        if content.get("dataType") != "moveObject":
            raise TransportError(f"Issuer registry {self.issuer_registry_id} not found")

        expected_type = config.qualified_name(config.ISSUER_REGISTRY_STRUCT_NAME, self.package_id)
        if content.get("type") != expected_type:
            raise TransportError(f"Issuer registry has unexpected type {content.get('type')!r}")

        fields = content.get("fields") or {}
        for name in _REGISTRY_ISSUER_FIELDS:
            if name in fields:
                issuers = _parse_address_collection(fields[name])
                if issuers is not None:
                    log.info(f"Issuer registry loaded: {len(issuers)} authorized issuers")
                    return issuers

        raise TransportError("Issuer registry has no readable issuer list")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _object_ref(self, object_id: str) -> Tuple[int, str]:
        result = await self._rpc("sui_getObject", [object_id, {}])
        data = (result or {}).get("data") if isinstance(result, dict) else None
        if not data:
            raise EvaluationError(f"Object {object_id} not found")
        try:
            return int(data["version"]), data["digest"]
        except (KeyError, TypeError, ValueError):
            raise TransportError(f"Malformed object reference for {object_id}")

    async def _rpc(self, method: str, params: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} request failed: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise TransportError(f"{method} returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError(f"{method} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise TransportError(f"{method} returned a non-object response")
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TransportError(f"{method} failed: {message}")
        if "result" not in body:
            raise TransportError(f"{method} response has no result")

        return body["result"]


def _is_byte_list(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return True
    return isinstance(value, list) and all(
        isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value
    )


def _parse_address_collection(value: Any) -> Optional[FrozenSet[str]]:
    """Parse a vector<address> or VecSet<address> rendered as JSON."""
    if isinstance(value, dict):
        value = (value.get("fields") or {}).get("contents")
    if not isinstance(value, list):
        return None
    return frozenset(
        normalize_address(item) for item in value
        if isinstance(item, str) and is_valid_address(item)
    )


# Singleton instance
_ledger_client: Optional[SuiLedgerClient] = None


def get_ledger_client() -> SuiLedgerClient:
    """Get or create the ledger client singleton."""
    global _ledger_client
    if _ledger_client is None:
        _ledger_client = SuiLedgerClient()
    return _ledger_client


def reset_ledger_client() -> None:
    """Reset the singleton (tests)."""
    global _ledger_client
    _ledger_client = None
