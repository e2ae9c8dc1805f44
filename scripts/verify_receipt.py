#!/usr/bin/env python3
"""
Verify Receipt Script

Runs one receipt through the same validator the API uses and prints the
derived subscription status. Reads APP_SHARED_SECRET from the environment
or .env like the server does.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.api.dependencies import build_receipt_config
from app.config import settings
from app.exceptions import MissingReceiptDataError, UpstreamError
from app.models.apple_receipt import VerificationResult
from app.services.apple_receipt_validator import AppleReceiptValidator
from app.services.subscription_status import resolve_subscription_status


def summarize(result: VerificationResult) -> dict[str, object]:
    """Build a printable summary of a verification result."""
    sub_status = resolve_subscription_status(result.latest_receipt_info)
    latest = sub_status.latest_transaction
    return {
        "status": result.status,
        "message": "OK" if result.is_valid else result.message,
        "environment": result.effective_environment,
        "is_premium": sub_status.is_premium,
        "latest_product_id": latest.product_id if latest else None,
        "latest_expires_date_ms": latest.expires_date_ms if latest else None,
    }


async def run(receipt_data: str, sandbox: bool) -> int:
    validator = AppleReceiptValidator(build_receipt_config(settings))
    try:
        result = await validator.verify(receipt_data, prefer_sandbox=sandbox)
    except MissingReceiptDataError as exc:
        print(exc.message, file=sys.stderr)
        return 2
    except UpstreamError as exc:
        print(f"Upstream error: {exc.message}", file=sys.stderr)
        return 1

    print(json.dumps(summarize(result), indent=2))
    return 0 if result.is_valid else 1


def main():
    parser = argparse.ArgumentParser(
        description="Verify an App Store receipt against verifyReceipt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Receipt file written by the app (base64 text)
  python3 verify_receipt.py receipt.b64

  # Read from stdin, try sandbox first
  cat receipt.b64 | python3 verify_receipt.py - --sandbox
        """,
    )
    parser.add_argument("receipt", help="Path to a base64 receipt file, or - for stdin")
    parser.add_argument(
        "--sandbox", action="store_true", help="Send to the sandbox endpoint first"
    )

    args = parser.parse_args()

    if args.receipt == "-":
        receipt_data = sys.stdin.read().strip()
    else:
        receipt_data = Path(args.receipt).read_text().strip()

    sys.exit(asyncio.run(run(receipt_data, args.sandbox)))


if __name__ == "__main__":
    main()
