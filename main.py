"""Command-line interface for the waitlist service."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

from dotenv import load_dotenv

from waitlist_api.config import Settings, load_settings
from waitlist_api.database import Database, StoreError

logger = logging.getLogger("waitlist.main")

_KNOWN_COMMANDS = {"serve", "init-db", "users", "waitlist"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Waitlist service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the database")
    subparsers.add_parser("users", help="List users created through Google sign-in")
    subparsers.add_parser("waitlist", help="Print waitlist signups, newest first")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: $PORT or 5000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str, port: int | None) -> None:
    from waitlist_api.service import create_app
    import uvicorn

    listen_port = port or settings.port
    logger.info("Server is running on port %s", listen_port)

    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=host, port=listen_port, log_level="info")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users have signed in yet.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 110)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<32}  {user.name or '-':<24}  {user.email or '<no email>':<32}  {created}")


def _list_waitlist(database: Database) -> None:
    entries = database.list_waitlist_entries()
    if not entries:
        print("The waitlist is empty.")
        return

    print(f"{len(entries)} waitlist signup(s):")
    for entry in entries:
        print(f"{entry.created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}  {entry.email}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    load_dotenv()

    args = _parse_args(argv)
    settings = load_settings()

    try:
        database = _initialise_database(settings)
        if args.command == "serve":
            _serve(settings=settings, database=database, host=args.host, port=args.port)
        elif args.command == "users":
            _list_users(database)
        elif args.command == "waitlist":
            _list_waitlist(database)
        elif args.command == "init-db":
            print("Database initialisation complete.")
    except StoreError as exc:
        logger.error("%s: %s", exc, exc.__cause__)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
