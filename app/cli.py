"""KYC verification commands.

Commands:
    kyc-verify verify <address>     Check the attestation status of an address

Exit codes:
    0  Verified
    1  Any other outcome (NotVerified, Expired, Revoked, Invalid, Error)
    2  Malformed address
"""

import asyncio
import json
from enum import Enum

import typer

from app.kyc.address import is_valid_address
from app.kyc.api_models import VerificationResult, VerificationStatus
from app.kyc.service import get_verification_service

EXIT_VERIFIED = 0
EXIT_NOT_VERIFIED = 1
EXIT_INVALID_ADDRESS = 2

app = typer.Typer(
    name="kyc-verify",
    help="Verify KYC attestations held on the ledger.",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    json = "json"
    text = "text"


def render_text(address: str, result: VerificationResult) -> str:
    lines = [
        f"Checking KYC for {address}...",
        "--------------------------------",
        f"KYC Status: {result.status.value}",
        f"Details: {result.details}",
    ]
    att = result.attestation
    if att is not None:
        lines += [
            "Attestation Details:",
            f"  Object ID: {att.object_id}",
            f"  Issuer: {att.issuer}",
            f"  Intended Recipient: {att.recipient}",
            f"  Current Owner: {att.current_owner}",
            f"  Issued: {att.issued_at.isoformat()}",
            f"  Expires: {att.expires_at.isoformat() if att.expires_at else 'Never'}",
            f"  Raw Status: {att.status_raw}",
        ]
    lines.append("--------------------------------")
    return "\n".join(lines)


@app.command("verify")
def verify_cmd(
    address: str = typer.Argument(..., help="Ledger address (0x-prefixed hex)"),
    format: OutputFormat = typer.Option(
        OutputFormat.text,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Verify the KYC attestation status of ADDRESS.

    Examples:
        kyc-verify verify 0xfaac5bf9dd7da0706425a88413c7467b1f00a1df730ca71eca229950196a657b
        kyc-verify verify 0xfaac... --format json
    """
    if not is_valid_address(address):
        typer.echo(f"Invalid Sui address: {address}", err=True)
        raise typer.Exit(code=EXIT_INVALID_ADDRESS)

    result = asyncio.run(get_verification_service().verify(address))

    if format == OutputFormat.json:
        typer.echo(json.dumps(result.to_wire(), indent=2))
    else:
        typer.echo(render_text(address, result))

    if result.status != VerificationStatus.VERIFIED:
        raise typer.Exit(code=EXIT_NOT_VERIFIED)


@app.callback()
def main() -> None:
    """KYC attestation verifier."""


if __name__ == "__main__":
    app()
