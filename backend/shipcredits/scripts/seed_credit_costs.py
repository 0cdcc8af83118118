"""
Seed the default feature costs for every active client that lacks them.

Usage (from backend/ with DATABASE_URL set):
  python -m shipcredits.scripts.seed_credit_costs [--client-id CLIENT] [--with-accounts]

Existing cost rows (custom or deactivated) are never touched.
"""
from __future__ import annotations

import argparse
import sys

from shipcredits.components.credits import costs
from shipcredits.components.credits import service as ledger
from shipcredits.models.client import Client
from shipcredits.platform.database import SessionLocal


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed default credit costs for clients")
    parser.add_argument("--client-id", help="Limit to a single client (optional)")
    parser.add_argument("--with-accounts", action="store_true", help="Also provision zeroed credit accounts")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        query = db.query(Client).filter(Client.is_active.is_(True))
        if args.client_id:
            query = query.filter(Client.id == args.client_id.strip())
        clients = query.order_by(Client.id.asc()).all()
        if args.client_id and not clients:
            print(f"Client not found or inactive: {args.client_id}", file=sys.stderr)
            return 2

        seeded = 0
        for client in clients:
            created = costs.seed_default_costs(db, client.id)
            if args.with_accounts:
                ledger.ensure_account(db, client.id)
            if created:
                print(f"  {client.id} ({client.display_name}): {created} cost rows created")
            seeded += created
        print(f"Done. Clients checked: {len(clients)}, cost rows created: {seeded}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
