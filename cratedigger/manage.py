"""Operator commands for provisioning profiles and session tokens."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from datetime import timedelta
import json
import secrets
import sys

from cratedigger.db import init_db, session_scope
from cratedigger.models import Profile
from cratedigger.services.access_guard import issue_session_token


def upsert_profile(user_id: str, *, role: str, username: str | None = None) -> None:
    with session_scope() as session:
        profile = session.get(Profile, user_id)
        if profile is None:
            profile = Profile(id=user_id)
            session.add(profile)
        profile.role = role
        if username is not None:
            profile.username = username


def profile_exists(user_id: str) -> bool:
    with session_scope() as session:
        return session.get(Profile, user_id) is not None


def _cli(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="cratedigger operator commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    profile_parser = subparsers.add_parser("profile", help="Create or update a profile")
    profile_parser.add_argument("user_id")
    profile_parser.add_argument("--role", default="user")
    profile_parser.add_argument("--username")

    token_parser = subparsers.add_parser("token", help="Issue a session token for a profile")
    token_parser.add_argument("user_id")
    token_parser.add_argument(
        "--ttl-hours",
        type=float,
        default=1.0,
        help="Lifetime of the issued token in hours",
    )

    args = parser.parse_args(argv)
    init_db()

    if args.command == "profile":
        upsert_profile(args.user_id, role=args.role, username=args.username)
        print(json.dumps({"id": args.user_id, "role": args.role}))
        return 0

    if not profile_exists(args.user_id):
        print(
            f"error: no profile with id {args.user_id!r}; create it with 'profile' first",
            file=sys.stderr,
        )
        return 1

    token = secrets.token_urlsafe(32)
    issue_session_token(args.user_id, token, ttl=timedelta(hours=args.ttl_hours))
    print(json.dumps({"user_id": args.user_id, "token": token}))
    return 0


def main() -> None:
    raise SystemExit(_cli())


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
