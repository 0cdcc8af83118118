"""
Read-only drift audit over every credit account.

Checks, per account:
  - balance == total_added - total_used
  - the latest transaction's balance snapshot equals the account balance
  - balance is not negative (unless overdraft is enabled)

Usage (from backend/ with DATABASE_URL set):
  python -m shipcredits.scripts.verify_credit_accounts [--client-id CLIENT]

Exits 1 when any drift is found.
"""
from __future__ import annotations

import argparse
import sys
from decimal import Decimal

from sqlalchemy.orm import Session

from shipcredits.components.credits import transaction_log
from shipcredits.components.credits.results import format_credits
from shipcredits.components.credits.service import overdraft_allowed
from shipcredits.models.client_credit_account import ClientCreditAccount
from shipcredits.platform.database import SessionLocal


def find_drift(db: Session, account: ClientCreditAccount) -> list[str]:
    problems: list[str] = []
    balance = Decimal(account.balance)
    expected = Decimal(account.total_added) - Decimal(account.total_used)
    if balance != expected:
        problems.append(
            f"balance {format_credits(balance)} != total_added - total_used ({format_credits(expected)})"
        )
    latest = transaction_log.latest_for_client(db, account.client_id)
    if latest is None:
        if balance != 0:
            problems.append(f"balance {format_credits(balance)} with no transactions recorded")
    elif Decimal(latest.balance) != balance:
        problems.append(
            f"latest transaction #{latest.id} snapshot {format_credits(Decimal(latest.balance))} "
            f"!= balance {format_credits(balance)}"
        )
    if balance < 0 and not overdraft_allowed():
        problems.append(f"negative balance {format_credits(balance)}")
    return problems


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify credit accounts against their ledgers")
    parser.add_argument("--client-id", help="Limit to a single client (optional)")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        query = db.query(ClientCreditAccount)
        if args.client_id:
            query = query.filter(ClientCreditAccount.client_id == args.client_id.strip())
        accounts = query.order_by(ClientCreditAccount.client_id.asc()).all()

        drifted = 0
        for account in accounts:
            problems = find_drift(db, account)
            if not problems:
                continue
            drifted += 1
            for problem in problems:
                print(f"DRIFT {account.client_id}: {problem}")

        print(f"Checked {len(accounts)} accounts, {drifted} with drift")
        return 1 if drifted else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
