"""Feature cost table: what one use of a billable feature costs a client."""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.orm import Session

from ...models.feature_credit_cost import FeatureCreditCost
from ...models.timestamps import utcnow
from ...platform.config import settings
from .results import InvalidCost, UnknownFeature

logger = logging.getLogger("shipcredits.costs")

CREDIT_QUANTUM = Decimal("0.0001")

FEATURE_ORDER = "ORDER"
FEATURE_WHATSAPP = "WHATSAPP"
FEATURE_IMAGE_PROCESSING = "IMAGE_PROCESSING"
FEATURE_TEXT_PROCESSING = "TEXT_PROCESSING"


def to_credits(value: Any) -> Decimal | None:
    """Coerce a number-ish value to a quantized credit Decimal, or None if malformed."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount.quantize(CREDIT_QUANTUM)


def normalize_feature(feature: Any) -> str:
    return str(feature or "").strip().upper()


def default_cost_catalog() -> Dict[str, Decimal]:
    """System-wide default cost per feature, parsed from settings."""
    try:
        raw = json.loads(settings.CREDIT_DEFAULT_COSTS_JSON or "{}")
    except (TypeError, ValueError):
        logger.warning("CREDIT_DEFAULT_COSTS_JSON is not valid JSON; no default costs available")
        raw = {}
    if not isinstance(raw, dict):
        return {}
    catalog: Dict[str, Decimal] = {}
    for feature, cost in raw.items():
        key = normalize_feature(feature)
        value = to_credits(cost)
        if not key or value is None or value < 0:
            continue
        catalog[key] = value
    return catalog


def known_features() -> List[str]:
    return sorted(default_cost_catalog())


def _get_row(db: Session, client_id: str, feature: str) -> FeatureCreditCost | None:
    return (
        db.query(FeatureCreditCost)
        .filter(FeatureCreditCost.client_id == client_id, FeatureCreditCost.feature == feature)
        .first()
    )


def get_cost(db: Session, client_id: str, feature: str) -> Decimal | UnknownFeature:
    """Cost of one use of ``feature`` for ``client_id``.

    An active custom row wins; otherwise the system default; otherwise
    ``UnknownFeature``.
    """
    key = normalize_feature(feature)
    row = _get_row(db, client_id, key) if key else None
    if row is not None and row.is_active:
        return Decimal(row.cost).quantize(CREDIT_QUANTUM)
    default = default_cost_catalog().get(key)
    if default is None:
        logger.warning(
            "Unknown billable feature client_id=%s feature=%s", client_id, feature, extra={"client_id": client_id}
        )
        return UnknownFeature(feature=key or str(feature or ""))
    return default


def _validate_cost(feature: str, cost: Any) -> Decimal | InvalidCost:
    value = to_credits(cost)
    if value is None:
        return InvalidCost(feature=feature, reason="cost must be a number")
    minimum = Decimal(settings.CREDIT_MIN_FEATURE_COST)
    if value < 0 or value < minimum:
        floor = max(minimum, Decimal("0"))
        return InvalidCost(feature=feature, reason=f"cost must be at least {floor.normalize()} credits")
    return value


def _upsert(db: Session, client_id: str, feature: str, cost: Decimal) -> FeatureCreditCost:
    row = _get_row(db, client_id, feature)
    if row is None:
        row = FeatureCreditCost(client_id=client_id, feature=feature, cost=cost, is_active=True)
        db.add(row)
    else:
        row.cost = cost
        row.is_active = True
        row.updated_at = utcnow()
    return row


def set_cost(
    db: Session, client_id: str, feature: str, cost: Any
) -> FeatureCreditCost | InvalidCost | UnknownFeature:
    key = normalize_feature(feature)
    if key not in default_cost_catalog():
        return UnknownFeature(feature=key or str(feature or ""))
    value = _validate_cost(key, cost)
    if isinstance(value, InvalidCost):
        return value
    row = _upsert(db, client_id, key, value)
    db.commit()
    db.refresh(row)
    logger.info(
        "Credit cost set client_id=%s feature=%s cost=%s", client_id, key, value, extra={"client_id": client_id}
    )
    return row


def bulk_set_costs(
    db: Session, client_id: str, costs: Iterable[Tuple[str, Any]]
) -> List[FeatureCreditCost] | InvalidCost | UnknownFeature:
    """Validate every entry first, then apply all of them in one commit."""
    catalog = default_cost_catalog()
    validated: List[Tuple[str, Decimal]] = []
    for feature, cost in costs:
        key = normalize_feature(feature)
        if key not in catalog:
            return UnknownFeature(feature=key or str(feature or ""))
        value = _validate_cost(key, cost)
        if isinstance(value, InvalidCost):
            return value
        validated.append((key, value))
    rows = [_upsert(db, client_id, key, value) for key, value in validated]
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info(
        "Credit costs updated client_id=%s features=%s",
        client_id,
        ",".join(k for k, _ in validated),
        extra={"client_id": client_id},
    )
    return rows


def deactivate_cost(db: Session, client_id: str, feature: str) -> bool:
    """Soft-delete a custom cost so lookups fall back to the default."""
    row = _get_row(db, client_id, normalize_feature(feature))
    if row is None or not row.is_active:
        return False
    row.is_active = False
    row.updated_at = utcnow()
    db.commit()
    return True


def seed_default_costs(db: Session, client_id: str) -> int:
    """Create a cost row for every catalog feature the client lacks. Idempotent."""
    existing = {
        feature
        for (feature,) in db.query(FeatureCreditCost.feature).filter(FeatureCreditCost.client_id == client_id)
    }
    created = 0
    for feature, cost in default_cost_catalog().items():
        if feature in existing:
            continue
        db.add(FeatureCreditCost(client_id=client_id, feature=feature, cost=cost, is_active=True))
        created += 1
    if created:
        db.commit()
    return created


def list_costs(db: Session, client_id: str) -> List[Dict[str, Any]]:
    """Effective price list: one entry per catalog feature."""
    rows = {
        row.feature: row
        for row in db.query(FeatureCreditCost).filter(FeatureCreditCost.client_id == client_id)
    }
    output: List[Dict[str, Any]] = []
    for feature, default in sorted(default_cost_catalog().items()):
        row = rows.get(feature)
        custom = row is not None and row.is_active
        output.append(
            {
                "feature": feature,
                "cost": float(Decimal(row.cost) if custom else default),
                "default_cost": float(default),
                "is_default": not custom,
                "updated_at": row.updated_at.isoformat() if custom and row.updated_at else None,
            }
        )
    return output
