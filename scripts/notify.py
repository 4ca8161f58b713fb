#!/usr/bin/env python3
"""
Run a notification fan-out from the command line (no HTTP server needed).

Uses the same settings as the service (.env / environment).

Usage:
    python scripts/notify.py player "Ana"
    python scripts/notify.py challenge "Padel Club" ch-42 uid-creator
    python scripts/notify.py --dry-run player "Ana"     # FCM validate_only

Prints the JSON result, e.g. {"success": 3, "failure": 0}
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from notifier.config import settings  # noqa: E402
from notifier.core.use_cases import NotificationService  # noqa: E402
from notifier.infra.fcm_sender import FcmPushSender  # noqa: E402
from notifier.infra.http_client import close_all_sessions  # noqa: E402
from notifier.infra.logging_config import setup_logging  # noqa: E402
from notifier.infra.rtdb_directory import RealtimeDatabaseDirectory  # noqa: E402


async def _run(args: argparse.Namespace) -> dict:
    service = NotificationService(
        directory=RealtimeDatabaseDirectory(),
        transport=FcmPushSender(validate_only=args.dry_run or None),
        parallel_lookups=settings.directory_parallel_lookups,
    )
    try:
        if args.command == "player":
            result = await service.notify_available_player(args.name)
        else:
            result = await service.notify_new_challenge(args.community, args.challenge_id, args.creator_id)
    finally:
        await close_all_sessions()
    return result.to_dict()


def main():
    parser = argparse.ArgumentParser(description="Send a notification fan-out")
    parser.add_argument("--dry-run", action="store_true", help="FCM validate_only (nothing is delivered)")
    sub = parser.add_subparsers(dest="command", required=True)

    player = sub.add_parser("player", help="Announce an available player")
    player.add_argument("name")

    challenge = sub.add_parser("challenge", help="Announce a new community challenge")
    challenge.add_argument("community")
    challenge.add_argument("challenge_id")
    challenge.add_argument("creator_id")

    args = parser.parse_args()
    if args.command == "player" and not args.name.strip():
        parser.error("name must not be blank")

    setup_logging(level=settings.log_level)
    print(json.dumps(asyncio.run(_run(args)), ensure_ascii=False))


if __name__ == "__main__":
    main()
