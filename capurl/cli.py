#!/usr/bin/env python3
"""
capurl command line

Issue and check signed URLs without running the server.

Commands:
- sign:   print a signed relative URL for a path
- verify: check a `verify` token against a path
"""

import argparse
import os
import sys
from typing import List, Optional

from .core.errors import CapURLError, VerificationError, format_epoch
from .core.keys import load_secret_key
from .core.signing import DEFAULT_EXPIRY_SECONDS, URLSigner


def _build_signer(args) -> URLSigner:
    secret = args.secret if args.secret is not None else os.getenv("SECRET_DATA")
    key = load_secret_key(secret)
    return URLSigner(key, expiry_seconds=args.expiry)


def cmd_sign(args) -> int:
    """Print a signed URL."""
    signer = _build_signer(args)
    signed = signer.issue(args.path, now=args.timestamp)
    print(signed.url)
    return 0


def cmd_verify(args) -> int:
    """Verify a token; exit 1 on failure."""
    signer = _build_signer(args)
    try:
        token = signer.verify(args.path, args.token, now=args.now)
    except VerificationError as e:
        print(f"FAILED ({e.reason}): {e.detail}", file=sys.stderr)
        return 1
    print(f"OK (expires at {format_epoch(signer.expires_at(token))})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="capurl",
        description="Issue and verify capurl signed URLs",
    )
    parser.add_argument(
        "--secret",
        default=None,
        help="Signing secret (default: $SECRET_DATA)",
    )
    parser.add_argument(
        "--expiry",
        type=int,
        default=DEFAULT_EXPIRY_SECONDS,
        help=f"Validity window in seconds (default: {DEFAULT_EXPIRY_SECONDS})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sign = subparsers.add_parser("sign", help="Print a signed URL for a path")
    sign.add_argument("path", help="Object path, e.g. /uploads/file.txt")
    sign.add_argument("--timestamp", type=int, default=None, help="Issue time (epoch seconds)")
    sign.set_defaults(func=cmd_sign)

    verify = subparsers.add_parser("verify", help="Verify a token against a path")
    verify.add_argument("path", help="Requested path")
    verify.add_argument("token", help="Value of the verify parameter")
    verify.add_argument("--now", type=int, default=None, help="Verification time (epoch seconds)")
    verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except (CapURLError, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
