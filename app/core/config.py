"""
KYC attestation verifier configuration constants.

Constants are organized into:
- NORMATIVE: Fixed by the deployed attestation contract, cannot be changed
  without a contract upgrade
- CONFIGURABLE: Defaults that may be overridden by deployment policy
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS (fixed by the on-ledger contract)
# =============================================================================

# Struct and function names inside the published package.
# Fully qualified names are "<package>::<module>::<name>".
ATTESTATION_STRUCT_NAME: str = "core::KycAttestation"
ISSUER_REGISTRY_STRUCT_NAME: str = "core::IssuerRegistry"
EFFECTIVE_STATUS_FUNCTION: str = "core::get_effective_status"
EFFECTIVE_STATUS_ENUM_NAME: str = "core::KycEffectiveStatus"

# Shared Clock object passed to get_effective_status.
# The clock is created at genesis, so its initial shared version is always 1.
CLOCK_OBJECT_ID: str = "0x6"
CLOCK_INITIAL_SHARED_VERSION: int = 1

# Sender used for read-only inspection calls (no gas, no signature)
ZERO_ADDRESS: str = "0x" + "0" * 64

# Stored expiry value meaning "never expires"
NO_EXPIRY_SENTINEL: int = 0

# =============================================================================
# CONFIGURABLE DEFAULTS
# =============================================================================

# Issuer authorization cache lifetime (5 minutes)
ISSUER_CACHE_TTL_SECONDS: float = float(os.getenv("KYC_ISSUER_CACHE_TTL", "300"))

# After a failed refresh, keep serving the stale issuer set this long
# before trying the registry again
ISSUER_CACHE_RETRY_SECONDS: float = float(os.getenv("KYC_ISSUER_CACHE_RETRY", "30"))

# Per-request timeout for ledger RPC calls
LEDGER_TIMEOUT_SECONDS: float = float(os.getenv("KYC_LEDGER_TIMEOUT", "10"))

# Overall budget for one verification at the service boundary
VERIFY_TIMEOUT_SECONDS: float = float(os.getenv("KYC_VERIFY_TIMEOUT", "30"))

# Page size for owned-object enumeration (fullnode maximum is 50)
LEDGER_PAGE_LIMIT: int = int(os.getenv("KYC_LEDGER_PAGE_LIMIT", "50"))

# Resolve candidate statuses concurrently instead of one at a time.
# The merged result is identical either way; only latency differs.
CONCURRENT_STATUS_QUERIES: bool = os.getenv(
    "KYC_CONCURRENT_STATUS_QUERIES", "false"
).lower() == "true"

# Consult the issuer registry before querying a candidate's status.
# When False the ledger-computed effective status is the only authority.
ENFORCE_ISSUER_REGISTRY: bool = os.getenv(
    "KYC_ENFORCE_ISSUER_REGISTRY", "true"
).lower() == "true"

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

LEDGER_RPC_URL: str = os.getenv(
    "KYC_LEDGER_RPC_URL", "https://fullnode.testnet.sui.io:443"
)

PACKAGE_ID: str = os.getenv(
    "KYC_PACKAGE_ID",
    "0x33c8b47d704febf97e109a96fd4bc703a291cb309c53ea8592e271767537e6a3",
)

ISSUER_REGISTRY_ID: str = os.getenv(
    "KYC_ISSUER_REGISTRY_ID",
    "0x120d5f874dc8deb0ddae92e68ffac57c715ea2faf8ff8e5c39ed6c9e40b17f89",
)

# Admin endpoint visibility
# Default: True for dev, set to False in production deployments
ADMIN_ENDPOINT_ENABLED: bool = os.getenv("ADMIN_ENDPOINT_ENABLED", "true").lower() == "true"


def qualified_name(name: str, package_id: str = PACKAGE_ID) -> str:
    """Prefix a "<module>::<name>" with the package id."""
    return f"{package_id}::{name}"


def attestation_type(package_id: str = PACKAGE_ID) -> str:
    """Fully qualified struct type of attestation records."""
    return qualified_name(ATTESTATION_STRUCT_NAME, package_id)


def effective_status_type(package_id: str = PACKAGE_ID) -> str:
    """Fully qualified type of the value returned by get_effective_status."""
    return qualified_name(EFFECTIVE_STATUS_ENUM_NAME, package_id)
