import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.logging_config import configure_logging
from app.kyc.address import is_valid_address
from app.kyc.api_models import VerificationStatus, VerifyRequest
from app.kyc.service import get_verification_service

configure_logging()
log = logging.getLogger("kyc")

app = FastAPI(title="KYC Attestation Verifier", version="0.1.0")


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"request_id": "-", "route": route, "remote_addr": remote})
    return resp


@app.post("/api/kyc/verify")
async def verify(req: VerifyRequest, request: Request):
    """Verify the KYC attestation status of a ledger address.

    Malformed addresses are rejected with 400 before the ledger is
    contacted. Every other outcome, including ledger failures, is a 200
    carrying the structured result.
    """
    if not is_valid_address(req.address):
        return JSONResponse(
            status_code=400,
            content={
                "status": VerificationStatus.ERROR.value,
                "details": "Invalid Sui address provided. Please check the address and try again.",
            },
        )

    result = await get_verification_service().verify(req.address)
    log.info("verify_called", extra={"route": "/api/kyc/verify",
                                     "remote_addr": request.client.host if request.client else "-"})
    return JSONResponse(result.to_wire())


@app.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": os.getenv("GIT_SHA", "unknown")}


@app.get("/admin")
def admin():
    """Return all configurable items for operator visibility.

    Gated by ADMIN_ENDPOINT_ENABLED (default: True for dev, False for prod).
    """
    from app.core.config import (
        ADMIN_ENDPOINT_ENABLED,
        ATTESTATION_STRUCT_NAME,
        CONCURRENT_STATUS_QUERIES,
        EFFECTIVE_STATUS_FUNCTION,
        ENFORCE_ISSUER_REGISTRY,
        ISSUER_CACHE_RETRY_SECONDS,
        ISSUER_CACHE_TTL_SECONDS,
        ISSUER_REGISTRY_ID,
        LEDGER_RPC_URL,
        LEDGER_TIMEOUT_SECONDS,
        PACKAGE_ID,
        VERIFY_TIMEOUT_SECONDS,
    )

    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    return {
        "normative": {
            "attestation_struct_name": ATTESTATION_STRUCT_NAME,
            "effective_status_function": EFFECTIVE_STATUS_FUNCTION,
        },
        "configurable": {
            "issuer_cache_ttl_seconds": ISSUER_CACHE_TTL_SECONDS,
            "issuer_cache_retry_seconds": ISSUER_CACHE_RETRY_SECONDS,
            "ledger_timeout_seconds": LEDGER_TIMEOUT_SECONDS,
            "verify_timeout_seconds": VERIFY_TIMEOUT_SECONDS,
        },
        "features": {
            "concurrent_status_queries": CONCURRENT_STATUS_QUERIES,
            "enforce_issuer_registry": ENFORCE_ISSUER_REGISTRY,
            "admin_endpoint_enabled": ADMIN_ENDPOINT_ENABLED,
        },
        "ledger": {
            "rpc_url": LEDGER_RPC_URL,
            "package_id": PACKAGE_ID,
            "issuer_registry_id": ISSUER_REGISTRY_ID,
        },
        "environment": {
            "log_level": logging.getLogger().getEffectiveLevel(),
            "log_level_name": logging.getLevelName(logging.getLogger().getEffectiveLevel()),
        },
        "service": get_verification_service().describe(),
    }
