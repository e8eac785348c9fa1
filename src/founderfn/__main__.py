"""founderfn CLI.

Usage:
    python -m founderfn serve                  # Start the functions app (uvicorn)
    python -m founderfn init-db                # Create tables from schema.sql
    python -m founderfn totp-code --user-id U  # Print a user's current 2FA code (local testing)
"""

from __future__ import annotations

import argparse
import logging
import sys

import psycopg
import psycopg.rows

from founderfn import crypto
from founderfn.auth import totp
from founderfn.config import settings


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the functions server."""
    import uvicorn

    from founderfn.functions.app import create_app

    print(f"Starting founderfn on http://{args.host}:{args.port}")
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())


def cmd_init_db(args: argparse.Namespace) -> None:
    """Apply schema.sql to the configured database."""
    from founderfn.db import apply_schema

    try:
        apply_schema(settings.database_url)
    except psycopg.Error as e:
        print(f"Cannot apply schema: {e}")
        sys.exit(1)
    print("Schema applied.")


def cmd_totp_code(args: argparse.Namespace) -> None:
    """Print the current code for a user's stored secret."""
    try:
        conn = psycopg.connect(settings.database_url, row_factory=psycopg.rows.dict_row)
    except psycopg.Error as e:
        print(f"Cannot connect to database: {e}")
        sys.exit(1)

    with conn:
        with conn.cursor() as cur:
            cur.execute("SELECT secret, is_enabled FROM user_2fa WHERE user_id = %s", (args.user_id,))
            row = cur.fetchone()

    if not row:
        print(f"No 2FA credential for user {args.user_id}")
        sys.exit(1)
    secret = crypto.unseal(row["secret"], settings.master_key)
    state = "enabled" if row["is_enabled"] else "pending"
    print(f"{totp.current_code(secret)}  ({state})")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="founderfn",
        description="Founder platform functions: 2FA, challenge progress, notifications",
    )
    sub = parser.add_subparsers(dest="command", help="Command to run")

    p_serve = sub.add_parser("serve", help="Start the functions app")
    p_serve.add_argument("--port", type=int, default=settings.port)
    p_serve.add_argument("--host", default=settings.host)

    sub.add_parser("init-db", help="Create tables")

    p_code = sub.add_parser("totp-code", help="Print a user's current 2FA code")
    p_code.add_argument("--user-id", required=True)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    _configure_logging()
    dispatch = {
        "serve": cmd_serve,
        "init-db": cmd_init_db,
        "totp-code": cmd_totp_code,
    }
    dispatch[args.command](args)


if __name__ == "__main__":
    main()
