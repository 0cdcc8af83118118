"""Typed outcomes for credit ledger operations.

Business-rule failures are returned, not raised, so callers such as the order
flow can branch with ``isinstance`` instead of catching exceptions. Only
infrastructure problems (storage errors, an account that can neither be read
nor created) are raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Union

from ...models.credit_transaction import CreditTransaction


class CreditLedgerError(Exception):
    """Infrastructure-level ledger failure."""


class AccountNotFound(CreditLedgerError):
    def __init__(self, client_id: str):
        super().__init__(f"Credit account for client {client_id!r} could not be found or created")
        self.client_id = client_id


def format_credits(value: Decimal) -> str:
    """Render a credit amount without trailing zeros (``1.5``, ``1000``)."""
    normalized = Decimal(value).normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


@dataclass(frozen=True)
class LedgerSuccess:
    new_balance: Decimal
    transaction: CreditTransaction

    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class LedgerFailure:
    code: ClassVar[str] = "ledger_failure"
    ok: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return self.code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class InvalidAmount(LedgerFailure):
    reason: str = "amount must be greater than 0"

    code: ClassVar[str] = "invalid_amount"

    @property
    def message(self) -> str:
        return f"Invalid amount: {self.reason}"


@dataclass(frozen=True)
class InvalidCost(LedgerFailure):
    feature: str = ""
    reason: str = "cost must be 0 or greater"

    code: ClassVar[str] = "invalid_cost"

    @property
    def message(self) -> str:
        if self.feature:
            return f"Invalid credit cost for {self.feature}: {self.reason}"
        return f"Invalid credit cost: {self.reason}"

    def to_dict(self) -> dict:
        return {**super().to_dict(), "feature": self.feature or None}


@dataclass(frozen=True)
class UnknownFeature(LedgerFailure):
    feature: str = ""

    code: ClassVar[str] = "unknown_feature"

    @property
    def message(self) -> str:
        return f"No credit cost is configured for feature {self.feature!r}"

    def to_dict(self) -> dict:
        return {**super().to_dict(), "feature": self.feature}


@dataclass(frozen=True)
class InsufficientCredit(LedgerFailure):
    balance: Decimal = Decimal("0")
    required: Decimal = Decimal("0")
    feature: str | None = None

    code: ClassVar[str] = "insufficient_credit"

    @property
    def shortfall(self) -> Decimal:
        return max(Decimal("0"), self.required - self.balance)

    @property
    def message(self) -> str:
        return (
            f"Insufficient credits. Required: {format_credits(self.required)}, "
            f"available: {format_credits(self.balance)}. Top up credits to continue."
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "balance": float(self.balance),
            "required": float(self.required),
            "shortfall": float(self.shortfall),
            "feature": self.feature,
        }


@dataclass(frozen=True)
class DuplicateReference(LedgerFailure):
    external_ref: str = ""
    transaction_id: int | None = None

    code: ClassVar[str] = "duplicate_reference"

    @property
    def message(self) -> str:
        return f"Payment {self.external_ref} was already processed"

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "external_ref": self.external_ref,
            "transaction_id": self.transaction_id,
        }


LedgerResult = Union[LedgerSuccess, InvalidAmount, UnknownFeature, InsufficientCredit, DuplicateReference]
