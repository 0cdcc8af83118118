"""Request bodies and response serializers for the credit routes."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...models.client_credit_account import ClientCreditAccount
from ...models.credit_transaction import CreditTransaction


class AddCreditsRequest(BaseModel):
    amount: float
    description: str = Field(default="", max_length=500)


class ResetCreditsRequest(BaseModel):
    total_added: float
    total_used: float = 0
    description: Optional[str] = Field(default=None, max_length=500)


class ChargeRequest(BaseModel):
    feature: str = Field(min_length=1, max_length=64)
    order_id: Optional[str] = Field(default=None, max_length=128)
    description: Optional[str] = Field(default=None, max_length=500)


class RefundRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=128)
    description: Optional[str] = Field(default=None, max_length=500)


class VerifyPaymentRequest(BaseModel):
    transaction_ref: str = Field(min_length=4, max_length=128)
    amount: float
    utr_number: Optional[str] = Field(default=None, max_length=64)
    # Amount read off the payment screenshot by the OCR collaborator, if any
    extracted_amount: Optional[float] = None


class FeatureCostUpdate(BaseModel):
    feature: str = Field(min_length=1, max_length=64)
    cost: float


class BulkFeatureCostUpdate(BaseModel):
    costs: List[FeatureCostUpdate] = Field(min_length=1)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _num(value: Any) -> float:
    return float(Decimal(value or 0))


def serialize_account(account: Optional[ClientCreditAccount], client_id: str) -> Dict[str, Any]:
    if account is None:
        return {
            "client_id": client_id,
            "balance": 0.0,
            "total_added": 0.0,
            "total_used": 0.0,
            "updated_at": None,
        }
    return {
        "client_id": account.client_id,
        "balance": _num(account.balance),
        "total_added": _num(account.total_added),
        "total_used": _num(account.total_used),
        "updated_at": _iso(account.updated_at),
    }


def serialize_transaction(entry: CreditTransaction) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "client_id": entry.client_id,
        "client_name": entry.client_name,
        "type": entry.type,
        "amount": _num(entry.amount),
        "balance": _num(entry.balance),
        "description": entry.description,
        "feature": entry.feature,
        "order_id": entry.order_id,
        "user_id": entry.user_id,
        "external_ref": entry.external_ref,
        "created_at": _iso(entry.created_at),
    }


def serialize_order_group(group: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_id": group["order_id"],
        "net_credits": _num(group["net_credits"]),
        "transaction_count": len(group["transactions"]),
        "first_created_at": _iso(group["first_created_at"]),
        "last_updated": _iso(group["last_updated"]),
        "transactions": [serialize_transaction(entry) for entry in group["transactions"]],
    }
