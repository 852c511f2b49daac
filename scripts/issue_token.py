"""Mint an access token for a user stored in a seed snapshot."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pinky.config import load_settings
from pinky.seeding import load_seed_file
from pinky.store import EntityStore
from pinky.tokens import TokenService


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Issue a Pinky access token")
    parser.add_argument("email", help="Email address of the user the token is issued for")
    parser.add_argument(
        "--seed-file",
        default=None,
        help="Seed snapshot to read users from (defaults to PINKY_SEED_PATH)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(list(argv) if argv is not None else None)
    settings = load_settings()

    seed_path = Path(args.seed_file).expanduser() if args.seed_file else settings.seed_path
    if seed_path is None:
        print("No seed file given; pass --seed-file or set PINKY_SEED_PATH", file=sys.stderr)
        return 1

    store = EntityStore()
    load_seed_file(store, seed_path)

    user = store.get_user_by_email(args.email)
    if user is None:
        print(f"No user with email {args.email!r} found in {seed_path}", file=sys.stderr)
        return 1

    tokens = TokenService.from_settings(settings)
    print(tokens.issue(user.id))
    print(f"\nValid for {tokens.ttl_seconds} seconds; the server must use the same AUTH_SECRET.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
