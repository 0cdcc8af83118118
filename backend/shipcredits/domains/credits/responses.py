from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...components.credits.results import (
    DuplicateReference,
    InsufficientCredit,
    InvalidAmount,
    InvalidCost,
    LedgerFailure,
    UnknownFeature,
)
from ...models.client import Client

_FAILURE_STATUS = {
    InvalidAmount: 400,
    InvalidCost: 400,
    UnknownFeature: 400,
    InsufficientCredit: 402,
    DuplicateReference: 409,
}


def failure_status(failure: LedgerFailure) -> int:
    return _FAILURE_STATUS.get(type(failure), 400)


def raise_for_failure(failure: LedgerFailure) -> None:
    raise HTTPException(status_code=failure_status(failure), detail=failure.to_dict())


def get_client_or_404(db: Session, client_id: str) -> Client:
    client = db.get(Client, client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client
