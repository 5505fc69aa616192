"""Ledger collaborators: JSON-RPC client, transaction encoding and status decoding."""

from .client import (
    LedgerClientProtocol,
    RawRecord,
    StatusValue,
    SuiLedgerClient,
    get_ledger_client,
    reset_ledger_client,
)
from .status_decoder import EffectiveStatus, decode_effective_status

__all__ = [
    "LedgerClientProtocol",
    "RawRecord",
    "StatusValue",
    "SuiLedgerClient",
    "get_ledger_client",
    "reset_ledger_client",
    "EffectiveStatus",
    "decode_effective_status",
]
