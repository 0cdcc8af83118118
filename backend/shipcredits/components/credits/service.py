"""Credit ledger service: the only sanctioned path for balance changes.

Every mutation runs inside the client's critical section and a single
database transaction covering the account update and the ledger append, so
the account and its history can never disagree.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.client import Client
from ...models.client_credit_account import ClientCreditAccount
from ...models.credit_transaction import CreditTransaction, CreditTransactionType
from ...models.timestamps import utcnow
from ...platform.config import settings
from . import accounts, costs, transaction_log
from .locks import client_critical_section
from .results import (
    AccountNotFound,
    DuplicateReference,
    InsufficientCredit,
    InvalidAmount,
    LedgerSuccess,
    UnknownFeature,
    format_credits,
)
from .transaction_log import TransactionFilters

logger = logging.getLogger("shipcredits.ledger")

ZERO = Decimal("0")

_DEFAULT_DEDUCT_DESCRIPTIONS = {
    costs.FEATURE_ORDER: "Order creation",
    costs.FEATURE_WHATSAPP: "WhatsApp message sent",
    costs.FEATURE_IMAGE_PROCESSING: "AI Usage in Order reference",
    costs.FEATURE_TEXT_PROCESSING: "AI Usage in Order reference",
}


def overdraft_allowed() -> bool:
    return bool(settings.CREDIT_ALLOW_OVERDRAFT)


@contextmanager
def _ledger_transaction(db: Session, client_id: str) -> Iterator[None]:
    with client_critical_section(client_id):
        try:
            yield
        except Exception:
            db.rollback()
            raise


def _snapshot_name(db: Session, client_id: str, client_name_snapshot: Optional[str]) -> Optional[str]:
    name = (client_name_snapshot or "").strip()
    return name or accounts.client_display_name(db, client_id)


def _locked_account(db: Session, client_id: str) -> ClientCreditAccount:
    accounts.ensure_exists(db, client_id)
    account = accounts.lock_for_update(db, client_id)
    if account is None:
        raise AccountNotFound(client_id)
    return account


def _commit(db: Session, entry: CreditTransaction) -> None:
    db.commit()
    db.refresh(entry)


def _optional_str(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def _duplicate_reference(client_id: str, ref: str, transaction_id: Optional[int]) -> DuplicateReference:
    logger.warning("Duplicate credit reference client_id=%s ref=%s", client_id, ref, extra={"client_id": client_id})
    return DuplicateReference(external_ref=ref, transaction_id=transaction_id)


def ensure_account(db: Session, client_id: str) -> ClientCreditAccount:
    """Provision a zeroed account for a client if it has none. Idempotent."""
    with _ledger_transaction(db, client_id):
        account = accounts.ensure_exists(db, client_id)
        db.commit()
        db.refresh(account)
    return account


def add_credits(
    db: Session,
    client_id: str,
    amount: Any,
    description: str,
    actor_user_id: Optional[str] = None,
    client_name_snapshot: Optional[str] = None,
    external_ref: Optional[str] = None,
) -> LedgerSuccess | InvalidAmount | DuplicateReference:
    value = costs.to_credits(amount)
    if value is None:
        return InvalidAmount(reason="amount must be a number")
    if value <= 0:
        return InvalidAmount(reason="amount must be greater than 0")
    description = (description or "").strip()
    if not description:
        return InvalidAmount(reason="description is required")
    ref = _optional_str(external_ref)

    with _ledger_transaction(db, client_id):
        if ref:
            existing = transaction_log.find_by_reference(db, client_id, ref)
            if existing is not None:
                db.rollback()
                return _duplicate_reference(client_id, ref, existing.id)

        account = _locked_account(db, client_id)
        new_balance = Decimal(account.balance) + value
        account.balance = new_balance
        account.total_added = Decimal(account.total_added) + value
        account.updated_at = utcnow()
        try:
            entry = transaction_log.append(
                db,
                client_id=client_id,
                client_name=_snapshot_name(db, client_id, client_name_snapshot),
                type=CreditTransactionType.ADD,
                amount=value,
                balance=new_balance,
                description=description,
                user_id=_optional_str(actor_user_id),
                external_ref=ref,
            )
            _commit(db, entry)
        except IntegrityError:
            if not ref:
                raise
            # Another process recorded the same reference after our check.
            db.rollback()
            winner = transaction_log.find_by_reference(db, client_id, ref)
            return _duplicate_reference(client_id, ref, winner.id if winner is not None else None)

    logger.info(
        "Credits added client_id=%s amount=%s balance=%s",
        client_id,
        format_credits(value),
        format_credits(new_balance),
        extra={"client_id": client_id},
    )
    return LedgerSuccess(new_balance=new_balance, transaction=entry)


def deduct_credits(
    db: Session,
    client_id: str,
    feature: str,
    order_id: Any = None,
    actor_user_id: Optional[str] = None,
    description: Optional[str] = None,
    client_name_snapshot: Optional[str] = None,
) -> LedgerSuccess | UnknownFeature | InsufficientCredit:
    """Charge one use of ``feature``; a failed check leaves everything untouched."""
    cost = costs.get_cost(db, client_id, feature)
    if isinstance(cost, UnknownFeature):
        return cost
    key = costs.normalize_feature(feature)

    with _ledger_transaction(db, client_id):
        account = accounts.lock_for_update(db, client_id)
        balance = Decimal(account.balance) if account is not None else ZERO
        if balance < cost and not overdraft_allowed():
            db.rollback()
            logger.info(
                "Insufficient credits client_id=%s feature=%s balance=%s required=%s",
                client_id,
                key,
                format_credits(balance),
                format_credits(cost),
                extra={"client_id": client_id},
            )
            return InsufficientCredit(balance=balance, required=cost, feature=key)

        if account is None:
            account = _locked_account(db, client_id)
        new_balance = Decimal(account.balance) - cost
        account.balance = new_balance
        account.total_used = Decimal(account.total_used) + cost
        account.updated_at = utcnow()
        entry = transaction_log.append(
            db,
            client_id=client_id,
            client_name=_snapshot_name(db, client_id, client_name_snapshot),
            type=CreditTransactionType.DEDUCT,
            amount=cost,
            balance=new_balance,
            description=(description or "").strip() or _DEFAULT_DEDUCT_DESCRIPTIONS.get(key, f"{key} usage"),
            feature=key,
            order_id=_optional_str(order_id),
            user_id=_optional_str(actor_user_id),
        )
        _commit(db, entry)

    logger.info(
        "Credits deducted client_id=%s feature=%s cost=%s balance=%s",
        client_id,
        key,
        format_credits(cost),
        format_credits(new_balance),
        extra={"client_id": client_id},
    )
    return LedgerSuccess(new_balance=new_balance, transaction=entry)


def reset_credits(
    db: Session,
    client_id: str,
    new_total_added: Any,
    new_total_used: Any,
    actor_user_id: Optional[str] = None,
    description: Optional[str] = None,
    client_name_snapshot: Optional[str] = None,
) -> LedgerSuccess | InvalidAmount:
    """Administrative override of both accumulators.

    Callers must be privileged; the route layer enforces that.
    """
    total_added = costs.to_credits(new_total_added)
    total_used = costs.to_credits(new_total_used)
    if total_added is None or total_used is None:
        return InvalidAmount(reason="totals must be numbers")
    if total_added < 0 or total_used < 0:
        return InvalidAmount(reason="totals cannot be negative")
    if total_used > total_added:
        return InvalidAmount(reason="total used cannot exceed total added")
    new_balance = total_added - total_used

    with _ledger_transaction(db, client_id):
        account = _locked_account(db, client_id)
        previous_balance = Decimal(account.balance)
        account.total_added = total_added
        account.total_used = total_used
        account.balance = new_balance
        account.updated_at = utcnow()
        entry = transaction_log.append(
            db,
            client_id=client_id,
            client_name=_snapshot_name(db, client_id, client_name_snapshot),
            type=CreditTransactionType.RESET,
            amount=new_balance,
            balance=new_balance,
            description=(description or "").strip() or "Manual credit reset",
            user_id=_optional_str(actor_user_id),
        )
        _commit(db, entry)

    logger.warning(
        "Credits reset client_id=%s previous_balance=%s balance=%s actor=%s",
        client_id,
        format_credits(previous_balance),
        format_credits(new_balance),
        actor_user_id,
        extra={"client_id": client_id},
    )
    return LedgerSuccess(new_balance=new_balance, transaction=entry)


def refund_order_credits(
    db: Session,
    client_id: str,
    order_id: Any,
    actor_user_id: Optional[str] = None,
    description: Optional[str] = None,
    client_name_snapshot: Optional[str] = None,
) -> LedgerSuccess | InvalidAmount:
    """Give back what an order was charged, net of earlier refunds."""
    order_key = _optional_str(order_id)
    if order_key is None:
        return InvalidAmount(reason="order_id is required for a refund")

    with _ledger_transaction(db, client_id):
        account = accounts.lock_for_update(db, client_id)
        refundable = transaction_log.net_deducted_for_order(db, client_id, order_key) if account else ZERO
        if refundable <= 0:
            db.rollback()
            return InvalidAmount(reason=f"nothing to refund for order {order_key}")

        new_balance = Decimal(account.balance) + refundable
        account.balance = new_balance
        account.total_added = Decimal(account.total_added) + refundable
        account.updated_at = utcnow()
        entry = transaction_log.append(
            db,
            client_id=client_id,
            client_name=_snapshot_name(db, client_id, client_name_snapshot),
            type=CreditTransactionType.REFUND,
            amount=refundable,
            balance=new_balance,
            description=(description or "").strip() or f"Refund for order {order_key}",
            order_id=order_key,
            user_id=_optional_str(actor_user_id),
        )
        _commit(db, entry)

    logger.info(
        "Credits refunded client_id=%s order_id=%s amount=%s balance=%s",
        client_id,
        order_key,
        format_credits(refundable),
        format_credits(new_balance),
        extra={"client_id": client_id},
    )
    return LedgerSuccess(new_balance=new_balance, transaction=entry)


def get_client_credits(db: Session, client_id: str) -> ClientCreditAccount | None:
    return accounts.get(db, client_id)


def has_sufficient_credits(db: Session, client_id: str, feature: str) -> bool:
    """Advisory pre-check; ``deduct_credits`` re-checks under the lock."""
    cost = costs.get_cost(db, client_id, feature)
    if isinstance(cost, UnknownFeature):
        return False
    if overdraft_allowed():
        return True
    account = accounts.get(db, client_id)
    balance = Decimal(account.balance) if account is not None else ZERO
    return balance >= cost


def get_credit_transactions(
    db: Session,
    client_id: str,
    page: int = 1,
    page_size: Optional[int] = None,
    filters: Optional[TransactionFilters] = None,
) -> Tuple[List[CreditTransaction], int]:
    return transaction_log.list_by_client(db, client_id, page, page_size, filters)


def get_credit_transactions_by_order(
    db: Session,
    client_id: str,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    return transaction_log.group_by_order(db, client_id, page, page_size)


def list_client_balances(db: Session) -> Dict[str, Any]:
    """Every active client with its credit summary, plus portfolio totals."""
    rows = (
        db.query(Client, ClientCreditAccount)
        .outerjoin(ClientCreditAccount, ClientCreditAccount.client_id == Client.id)
        .filter(Client.is_active.is_(True))
        .order_by(Client.company_name.asc(), Client.name.asc())
        .all()
    )
    clients: List[Dict[str, Any]] = []
    totals = {"balance": ZERO, "total_added": ZERO, "total_used": ZERO}
    for client, account in rows:
        balance = Decimal(account.balance) if account is not None else ZERO
        added = Decimal(account.total_added) if account is not None else ZERO
        used = Decimal(account.total_used) if account is not None else ZERO
        totals["balance"] += balance
        totals["total_added"] += added
        totals["total_used"] += used
        clients.append(
            {
                "id": client.id,
                "name": client.name,
                "company_name": client.company_name,
                "email": client.email,
                "credits": {
                    "balance": float(balance),
                    "total_added": float(added),
                    "total_used": float(used),
                    "last_updated": account.updated_at.isoformat() if account is not None and account.updated_at else None,
                },
            }
        )
    return {
        "clients": clients,
        "summary": {
            "total_clients": len(clients),
            "total_credits": float(totals["balance"]),
            "total_added": float(totals["total_added"]),
            "total_used": float(totals["total_used"]),
        },
    }
