"""Admin credit management: balances across clients, top-ups, resets, pricing."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...components.credits import costs
from ...components.credits import service as ledger
from ...components.credits.results import LedgerFailure, format_credits
from ...components.credits.schemas import (
    AddCreditsRequest,
    BulkFeatureCostUpdate,
    FeatureCostUpdate,
    RefundRequest,
    ResetCreditsRequest,
    serialize_account,
    serialize_order_group,
    serialize_transaction,
)
from ...components.credits.transaction_log import TransactionFilters, clamp_page, pagination_meta
from ...models.credit_transaction import CreditTransactionType
from ...platform.database import get_db
from ...deps import require_admin, require_master_admin
from ...platform.security import RequestContext
from .responses import get_client_or_404, raise_for_failure

logger = logging.getLogger("shipcredits.routes.admin")

router = APIRouter(prefix="/admin/credits", tags=["Admin Credits"])


def _client_summary(client) -> dict:
    return {
        "id": client.id,
        "name": client.name,
        "company_name": client.company_name,
        "email": client.email,
    }


def _serialize_cost_row(row) -> dict:
    return {
        "feature": row.feature,
        "cost": float(row.cost),
        "is_active": bool(row.is_active),
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


@router.get("")
def list_client_credits(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_admin),
):
    """All active clients with their credit balances and portfolio totals."""
    data = ledger.list_client_balances(db)
    logger.info("Admin credit overview user=%s clients=%d", context.user_id, data["summary"]["total_clients"])
    return {"success": True, "data": data}


@router.get("/{client_id}")
def get_client_credits(
    client_id: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_admin),
):
    client = get_client_or_404(db, client_id)
    account = ledger.get_client_credits(db, client.id)
    return {
        "success": True,
        "data": {
            "credits": serialize_account(account, client.id),
            "client": _client_summary(client),
        },
    }


@router.post("/{client_id}")
def add_client_credits(
    client_id: str,
    body: AddCreditsRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    result = ledger.add_credits(
        db,
        client.id,
        body.amount,
        body.description,
        actor_user_id=context.user_id,
        client_name_snapshot=client.display_name,
    )
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    return {
        "success": True,
        "data": {
            "new_balance": float(result.new_balance),
            "credits": serialize_account(ledger.get_client_credits(db, client.id), client.id),
            "transaction": serialize_transaction(result.transaction),
        },
        "message": f"Successfully added {format_credits(result.transaction.amount)} credits to {client.display_name}",
    }


@router.put("/{client_id}")
def reset_client_credits(
    client_id: str,
    body: ResetCreditsRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    result = ledger.reset_credits(
        db,
        client.id,
        body.total_added,
        body.total_used,
        actor_user_id=context.user_id,
        description=body.description,
        client_name_snapshot=client.display_name,
    )
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    return {
        "success": True,
        "data": {
            "new_balance": float(result.new_balance),
            "credits": serialize_account(ledger.get_client_credits(db, client.id), client.id),
            "transaction": serialize_transaction(result.transaction),
        },
        "message": f"Successfully reset credits for {client.display_name}",
    }


@router.post("/{client_id}/refunds")
def refund_order(
    client_id: str,
    body: RefundRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    result = ledger.refund_order_credits(
        db,
        client.id,
        body.order_id,
        actor_user_id=context.user_id,
        description=body.description,
        client_name_snapshot=client.display_name,
    )
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    return {
        "success": True,
        "data": {
            "new_balance": float(result.new_balance),
            "transaction": serialize_transaction(result.transaction),
        },
    }


@router.get("/{client_id}/transactions")
def get_client_transactions(
    client_id: str,
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    group_by_order: bool = Query(False),
    order_id: Optional[str] = Query(None),
    feature: Optional[str] = Query(None),
    type: Optional[CreditTransactionType] = Query(None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_admin),
):
    client = get_client_or_404(db, client_id)
    page, page_size = clamp_page(page, page_size)
    if group_by_order:
        groups, total = ledger.get_credit_transactions_by_order(db, client.id, page, page_size)
        data = [serialize_order_group(group) for group in groups]
    else:
        filters = TransactionFilters(order_id=order_id, feature=feature, type=type)
        items, total = ledger.get_credit_transactions(db, client.id, page, page_size, filters)
        data = [serialize_transaction(entry) for entry in items]
    return {
        "success": True,
        "data": data,
        "pagination": pagination_meta(page, page_size, total),
    }


@router.get("/{client_id}/costs")
def get_client_costs(
    client_id: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_admin),
):
    client = get_client_or_404(db, client_id)
    return {"success": True, "data": costs.list_costs(db, client.id)}


@router.post("/{client_id}/costs")
def bulk_update_client_costs(
    client_id: str,
    body: BulkFeatureCostUpdate,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    result = costs.bulk_set_costs(db, client.id, [(item.feature, item.cost) for item in body.costs])
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    return {
        "success": True,
        "data": [_serialize_cost_row(row) for row in result],
        "message": f"Successfully updated credit costs for {client.display_name}",
    }


@router.put("/{client_id}/costs")
def update_client_cost(
    client_id: str,
    body: FeatureCostUpdate,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    result = costs.set_cost(db, client.id, body.feature, body.cost)
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    return {
        "success": True,
        "data": _serialize_cost_row(result),
        "message": f"Successfully updated {result.feature} credit cost for {client.display_name}",
    }


@router.delete("/{client_id}/costs/{feature}")
def deactivate_client_cost(
    client_id: str,
    feature: str,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(require_master_admin),
):
    client = get_client_or_404(db, client_id)
    if not costs.deactivate_cost(db, client.id, feature):
        raise HTTPException(status_code=404, detail="No active custom cost for this feature")
    return {"success": True, "data": costs.list_costs(db, client.id)}
