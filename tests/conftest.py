"""Root conftest for all tests - provides shared fixtures."""

import os

# Keep test runs from writing a debug log file
# (must be set before app.main is imported)
os.environ.setdefault("KYC_LOG_FILE", "")

import pytest


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset service and ledger singletons so tests never share state."""
    from app.kyc.ledger.client import reset_ledger_client
    from app.kyc.service import reset_verification_service

    reset_ledger_client()
    reset_verification_service()
    yield
    reset_ledger_client()
    reset_verification_service()
