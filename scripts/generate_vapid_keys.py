#!/usr/bin/env python3
"""Generate a VAPID key pair for pushrelay.

Prints the pair as .env lines. The public key is also
what browsers pass as ``applicationServerKey`` when
subscribing.

Usage:
    uv run scripts/generate_vapid_keys.py [subject]

Arguments:
    subject   — optional mailto:/https: contact for VAPID_SUBJECT
"""

from __future__ import annotations

import sys

from pushrelay.notifications.vapid import generate_vapid_keys


def main() -> None:
    args = sys.argv[1:]
    if len(args) > 1:
        print(
            "Usage: generate_vapid_keys.py [subject]",
            file=sys.stderr,
        )
        sys.exit(1)

    public_key, private_key = generate_vapid_keys()
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    if args:
        print(f"VAPID_SUBJECT={args[0]}")


if __name__ == "__main__":
    main()
