"""Tenant-facing credit routes: balance, history, charges and payment top-ups."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...components.credits import costs
from ...components.credits import service as ledger
from ...components.credits.results import LedgerFailure, format_credits
from ...components.credits.schemas import (
    ChargeRequest,
    VerifyPaymentRequest,
    serialize_account,
    serialize_order_group,
    serialize_transaction,
)
from ...components.credits.transaction_log import TransactionFilters, clamp_page, pagination_meta
from ...models.credit_transaction import CreditTransactionType
from ...platform.database import get_db
from ...deps import get_request_context
from ...platform.security import RequestContext
from .responses import get_client_or_404, raise_for_failure

logger = logging.getLogger("shipcredits.routes")

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.get("")
def get_my_credits(
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Current balance and effective price list for the caller's client."""
    account = ledger.get_client_credits(db, context.client_id)
    return {
        "success": True,
        "data": {
            "credits": serialize_account(account, context.client_id),
            "costs": costs.list_costs(db, context.client_id),
        },
    }


@router.get("/transactions")
def get_my_transactions_by_order(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    page, limit = clamp_page(page, limit)
    groups, total = ledger.get_credit_transactions_by_order(db, context.client_id, page, limit)
    return {
        "success": True,
        "data": [serialize_order_group(group) for group in groups],
        "pagination": pagination_meta(page, limit, total),
    }


@router.get("/transactions/flat")
def get_my_transactions(
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    order_id: Optional[str] = Query(None),
    feature: Optional[str] = Query(None),
    type: Optional[CreditTransactionType] = Query(None),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    page, page_size = clamp_page(page, page_size)
    filters = TransactionFilters(order_id=order_id, feature=feature, type=type)
    items, total = ledger.get_credit_transactions(db, context.client_id, page, page_size, filters)
    return {
        "success": True,
        "data": [serialize_transaction(entry) for entry in items],
        "pagination": pagination_meta(page, page_size, total),
    }


@router.post("/charges", status_code=201)
def charge_feature(
    body: ChargeRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Deduct the cost of one billable action (order creation, WhatsApp, AI parsing)."""
    result = ledger.deduct_credits(
        db,
        context.client_id,
        body.feature,
        order_id=body.order_id,
        actor_user_id=context.user_id,
        description=body.description,
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


@router.post("/verify-payment", status_code=201)
def verify_payment(
    body: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Credit a confirmed payment exactly once (1 credit per currency unit)."""
    client = get_client_or_404(db, context.client_id)
    transaction_ref = body.transaction_ref.strip()
    amount = costs.to_credits(body.amount)
    if amount is None or amount <= 0:
        raise HTTPException(status_code=400, detail="Transaction reference and a positive amount are required")
    if body.extracted_amount is not None:
        extracted = costs.to_credits(body.extracted_amount)
        if extracted != amount:
            logger.warning(
                "Payment amount mismatch client_id=%s ref=%s expected=%s extracted=%s",
                client.id,
                transaction_ref,
                format_credits(amount),
                body.extracted_amount,
            )
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Amount mismatch! Expected: {format_credits(amount)}, "
                    f"Found: {format_credits(extracted) if extracted is not None else body.extracted_amount}. "
                    "Please verify the payment screenshot."
                ),
            )

    description = f"Credit recharge via UPI - {transaction_ref}"
    utr_number = (body.utr_number or "").strip()
    if utr_number:
        description += f" | UTR: {utr_number}"

    result = ledger.add_credits(
        db,
        client.id,
        amount,
        description,
        actor_user_id=context.user_id,
        client_name_snapshot=client.display_name,
        external_ref=transaction_ref,
    )
    if isinstance(result, LedgerFailure):
        raise_for_failure(result)
    logger.info("Payment verified client_id=%s ref=%s amount=%s", client.id, transaction_ref, format_credits(amount))
    return {
        "success": True,
        "message": "Payment verified and credits added successfully",
        "data": {
            "amount": float(amount),
            "new_balance": float(result.new_balance),
            "transaction_ref": transaction_ref,
            "utr_number": utr_number or None,
            "transaction": serialize_transaction(result.transaction),
        },
    }
