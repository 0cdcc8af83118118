"""
Grant credits to a client through the ledger (audited ADD entry).

Usage (from backend/ with DATABASE_URL set):
  python -m shipcredits.scripts.grant_credits <client_id> <amount> [--description TEXT] [--actor USER_ID]
"""
from __future__ import annotations

import argparse
import sys

from shipcredits.components.credits import service as ledger
from shipcredits.components.credits.results import LedgerFailure, format_credits
from shipcredits.models.client import Client
from shipcredits.platform.database import SessionLocal


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Grant credits to a client")
    parser.add_argument("client_id")
    parser.add_argument("amount")
    parser.add_argument("--description", default="Manual credit grant", help="Ledger description")
    parser.add_argument("--actor", default="system", help="User id recorded on the transaction")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        client = db.get(Client, args.client_id.strip())
        if client is None:
            print(f"Client not found: {args.client_id}", file=sys.stderr)
            return 2
        result = ledger.add_credits(
            db,
            client.id,
            args.amount,
            args.description,
            actor_user_id=args.actor,
            client_name_snapshot=client.display_name,
        )
        if isinstance(result, LedgerFailure):
            print(result.message, file=sys.stderr)
            return 3
        print(
            f"Granted {format_credits(result.transaction.amount)} credits to {client.display_name}. "
            f"New balance: {format_credits(result.new_balance)}"
        )
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
