"""
KYC verifier exceptions.

Ledger failures (TransportError, EvaluationError, DecodeError) share the
LedgerError base: the reconciler treats all three the same way, as an
Error outcome for the affected candidate.
"""

from app.kyc.api_models import ErrorCode


class KycError(Exception):
    """Base exception for verifier operations.

    Carries an error code from ErrorCode.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class LedgerError(KycError):
    """Base for failures talking to, or interpreting answers from, the ledger."""


class TransportError(LedgerError):
    """Ledger unreachable, HTTP failure, or malformed RPC envelope."""

    def __init__(self, message: str = "Ledger RPC failed"):
        super().__init__(ErrorCode.LEDGER_TRANSPORT_FAILED, message)


class EvaluationError(LedgerError):
    """Read-only inspection call executed but reported failure."""

    def __init__(self, message: str = "Ledger evaluation failed"):
        super().__init__(ErrorCode.LEDGER_EVALUATION_FAILED, message)


class DecodeError(LedgerError):
    """Returned status value does not have the expected enumerator shape."""

    def __init__(self, message: str = "Could not decode effective status"):
        super().__init__(ErrorCode.STATUS_DECODE_FAILED, message)


class AuthorizationCacheError(KycError):
    """Trusted issuer set could not be loaded and no cached copy exists."""

    def __init__(self, message: str = "Issuer registry unavailable"):
        super().__init__(ErrorCode.ISSUER_REGISTRY_UNAVAILABLE, message)


class InvalidAddressError(KycError):
    """Subject identifier is not a well-formed ledger address."""

    def __init__(self, message: str = "Invalid address"):
        super().__init__(ErrorCode.ADDRESS_INVALID, message)
