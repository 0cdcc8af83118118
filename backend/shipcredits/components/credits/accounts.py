"""Client credit accounts: reads and lazy provisioning, never balance changes."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.client import Client
from ...models.client_credit_account import ClientCreditAccount
from .results import AccountNotFound

logger = logging.getLogger("shipcredits.accounts")

ZERO = Decimal("0")


def get(db: Session, client_id: str) -> ClientCreditAccount | None:
    return db.query(ClientCreditAccount).filter(ClientCreditAccount.client_id == client_id).first()


def lock_for_update(db: Session, client_id: str) -> ClientCreditAccount | None:
    """Read the account row with a row lock held until the transaction ends."""
    return (
        db.query(ClientCreditAccount)
        .filter(ClientCreditAccount.client_id == client_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def ensure_exists(db: Session, client_id: str) -> ClientCreditAccount:
    """Return the client's account, creating a zeroed one if missing.

    Flushes but does not commit; call it at the start of a unit of work. A
    creator losing the unique race to another process rolls back and re-reads
    the winner's row.
    """
    account = get(db, client_id)
    if account is not None:
        return account
    account = ClientCreditAccount(
        client_id=client_id,
        balance=ZERO,
        total_added=ZERO,
        total_used=ZERO,
    )
    db.add(account)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        account = get(db, client_id)
        if account is None:
            logger.error("Credit account could not be created client_id=%s", client_id, extra={"client_id": client_id})
            raise AccountNotFound(client_id)
        return account
    logger.info("Credit account provisioned client_id=%s", client_id, extra={"client_id": client_id})
    return account


def client_display_name(db: Session, client_id: str) -> str | None:
    client = db.get(Client, client_id)
    if client is None:
        return None
    return client.display_name or None
