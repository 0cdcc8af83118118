"""Append-only credit transaction log and its history queries."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.credit_transaction import CreditTransaction, CreditTransactionType
from ...platform.config import settings
from .costs import CREDIT_QUANTUM

ZERO = Decimal("0")


@dataclass(frozen=True)
class TransactionFilters:
    order_id: Optional[str] = None
    feature: Optional[str] = None
    type: Optional[CreditTransactionType] = None


def clamp_page(page: Any, page_size: Any) -> Tuple[int, int]:
    """1-indexed page and a page size bounded to the configured maximum."""
    try:
        page_value = int(page)
    except (TypeError, ValueError):
        page_value = 1
    try:
        size_value = int(page_size) if page_size is not None else settings.CREDIT_HISTORY_DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        size_value = settings.CREDIT_HISTORY_DEFAULT_PAGE_SIZE
    max_size = max(1, int(settings.CREDIT_HISTORY_MAX_PAGE_SIZE))
    return max(1, page_value), min(max(1, size_value), max_size)


def pagination_meta(page: int, page_size: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": page_size,
        "total": total,
        "total_pages": (total + page_size - 1) // page_size if page_size else 0,
    }


def append(
    db: Session,
    *,
    client_id: str,
    type: CreditTransactionType,
    amount: Decimal,
    balance: Decimal,
    description: str,
    client_name: Optional[str] = None,
    feature: Optional[str] = None,
    order_id: Optional[str] = None,
    user_id: Optional[str] = None,
    external_ref: Optional[str] = None,
) -> CreditTransaction:
    entry = CreditTransaction(
        client_id=client_id,
        client_name=client_name,
        type=CreditTransactionType(type).value,
        amount=amount,
        balance=balance,
        description=description,
        feature=feature,
        order_id=order_id,
        user_id=user_id,
        external_ref=external_ref,
    )
    db.add(entry)
    db.flush()
    return entry


def _recent_first(query):
    return query.order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())


def list_by_client(
    db: Session,
    client_id: str,
    page: int = 1,
    page_size: Optional[int] = None,
    filters: Optional[TransactionFilters] = None,
) -> Tuple[List[CreditTransaction], int]:
    page, page_size = clamp_page(page, page_size)
    query = db.query(CreditTransaction).filter(CreditTransaction.client_id == client_id)
    if filters is not None:
        if filters.order_id:
            query = query.filter(CreditTransaction.order_id == str(filters.order_id))
        if filters.feature:
            query = query.filter(CreditTransaction.feature == filters.feature.strip().upper())
        if filters.type:
            query = query.filter(CreditTransaction.type == CreditTransactionType(filters.type).value)
    total = query.count()
    items = _recent_first(query).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def signed_amount(entry: CreditTransaction) -> Decimal:
    """Signed contribution of one entry to a group's net credits."""
    amount = Decimal(entry.amount)
    if entry.type == CreditTransactionType.DEDUCT.value:
        return -amount
    return amount


def group_by_order(
    db: Session,
    client_id: str,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Coalesce transactions sharing an order id; others stay standalone.

    Groups are ordered by their most recent transaction and paginated as
    groups, not rows.
    """
    page, page_size = clamp_page(page, page_size)
    entries = _recent_first(
        db.query(CreditTransaction).filter(CreditTransaction.client_id == client_id)
    ).all()

    groups: List[Dict[str, Any]] = []
    by_order: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        if entry.order_id:
            group = by_order.get(entry.order_id)
            if group is None:
                group = {
                    "order_id": entry.order_id,
                    "transactions": [],
                    "net_credits": ZERO,
                    "first_created_at": entry.created_at,
                    "last_updated": entry.created_at,
                }
                by_order[entry.order_id] = group
                groups.append(group)
        else:
            group = {
                "order_id": None,
                "transactions": [],
                "net_credits": ZERO,
                "first_created_at": entry.created_at,
                "last_updated": entry.created_at,
            }
            groups.append(group)
        group["transactions"].append(entry)
        group["net_credits"] += signed_amount(entry)
        # Entries arrive newest first, so each one only moves the start back.
        group["first_created_at"] = entry.created_at

    total = len(groups)
    offset = (page - 1) * page_size
    return groups[offset:offset + page_size], total


def find_by_reference(db: Session, client_id: str, external_ref: str) -> CreditTransaction | None:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.client_id == client_id, CreditTransaction.external_ref == external_ref)
        .first()
    )


def count_for_client(db: Session, client_id: str) -> int:
    return db.query(CreditTransaction).filter(CreditTransaction.client_id == client_id).count()


def latest_for_client(db: Session, client_id: str) -> CreditTransaction | None:
    return _recent_first(
        db.query(CreditTransaction).filter(CreditTransaction.client_id == client_id)
    ).first()


def net_deducted_for_order(db: Session, client_id: str, order_id: str) -> Decimal:
    """DEDUCT total for an order minus anything already refunded for it."""
    rows = (
        db.query(CreditTransaction.type, func.coalesce(func.sum(CreditTransaction.amount), 0))
        .filter(
            CreditTransaction.client_id == client_id,
            CreditTransaction.order_id == str(order_id),
            CreditTransaction.type.in_(
                [CreditTransactionType.DEDUCT.value, CreditTransactionType.REFUND.value]
            ),
        )
        .group_by(CreditTransaction.type)
        .all()
    )
    totals = {kind: Decimal(str(total or 0)).quantize(CREDIT_QUANTUM) for kind, total in rows}
    net = totals.get(CreditTransactionType.DEDUCT.value, ZERO) - totals.get(CreditTransactionType.REFUND.value, ZERO)
    return max(ZERO, net)
