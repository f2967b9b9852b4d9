"""
Issue or revoke the API key a web app user sends to the scheduled post API.

Usage:
  python scripts/create_api_key.py --user-id clx2abc0000
  python scripts/create_api_key.py --user-id clx2abc0000 --revoke
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.auth.api_key import get_api_key_store


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Issue or revoke a scheduled post API key")
    parser.add_argument("--user-id", required=True, help="Web app user id the key acts as")
    parser.add_argument(
        "--revoke",
        action="store_true",
        help="Revoke the user's key instead of issuing a new one",
    )
    args = parser.parse_args(argv)

    store = get_api_key_store()

    if args.revoke:
        if store.revoke_key(args.user_id):
            print(f"Revoked API key for {args.user_id}")
            return 0
        print(f"No API key found for {args.user_id}")
        return 1

    # Issuing replaces any previous key for the user
    print(store.create_key(args.user_id))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
