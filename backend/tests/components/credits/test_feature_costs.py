"""Feature cost table: lookup precedence, validation and the default catalog."""

from decimal import Decimal

import pytest

from shipcredits.components.credits import costs
from shipcredits.components.credits.results import InvalidCost, UnknownFeature
from shipcredits.models.feature_credit_cost import FeatureCreditCost
from shipcredits.platform.config import Settings, settings


def test_default_catalog_has_the_four_billable_features():
    catalog = costs.default_cost_catalog()
    assert catalog == {
        "ORDER": Decimal("1"),
        "WHATSAPP": Decimal("1"),
        "IMAGE_PROCESSING": Decimal("2"),
        "TEXT_PROCESSING": Decimal("1"),
    }


def test_default_catalog_skips_malformed_entries(monkeypatch):
    monkeypatch.setattr(
        settings,
        "CREDIT_DEFAULT_COSTS_JSON",
        '{"order": "1.5", "BROKEN": "abc", "NEGATIVE": -2, "": 4}',
    )
    assert costs.default_cost_catalog() == {"ORDER": Decimal("1.5")}


def test_default_catalog_survives_invalid_json(monkeypatch):
    monkeypatch.setattr(settings, "CREDIT_DEFAULT_COSTS_JSON", "{not json")
    assert costs.default_cost_catalog() == {}


def test_settings_env_override_for_overdraft(monkeypatch):
    monkeypatch.setenv("CREDIT_ALLOW_OVERDRAFT", "true")
    assert Settings().CREDIT_ALLOW_OVERDRAFT is True


@pytest.mark.parametrize(
    "raw,expected",
    [
        (1, Decimal("1.0000")),
        ("2.5", Decimal("2.5000")),
        (0.1, Decimal("0.1000")),
        ("  3 ", Decimal("3.0000")),
        (None, None),
        (True, None),
        ("abc", None),
        ("NaN", None),
        ("Infinity", None),
    ],
)
def test_to_credits(raw, expected):
    assert costs.to_credits(raw) == expected


def test_get_cost_falls_back_to_default(db, tenant):
    assert costs.get_cost(db, tenant.id, "ORDER") == Decimal("1")
    assert costs.get_cost(db, tenant.id, "image_processing") == Decimal("2")


def test_get_cost_unknown_feature(db, tenant):
    result = costs.get_cost(db, tenant.id, "TELEPORT")
    assert isinstance(result, UnknownFeature)
    assert result.feature == "TELEPORT"
    assert result.code == "unknown_feature"


def test_custom_cost_overrides_default(db, tenant):
    row = costs.set_cost(db, tenant.id, "order", 0.5)
    assert isinstance(row, FeatureCreditCost)
    assert row.feature == "ORDER"
    assert costs.get_cost(db, tenant.id, "ORDER") == Decimal("0.5")


def test_custom_cost_is_scoped_to_the_client(db, make_client):
    first = make_client()
    second = make_client()
    costs.set_cost(db, first.id, "WHATSAPP", 3)
    assert costs.get_cost(db, first.id, "WHATSAPP") == Decimal("3")
    assert costs.get_cost(db, second.id, "WHATSAPP") == Decimal("1")


def test_set_cost_rejects_negative(db, tenant):
    result = costs.set_cost(db, tenant.id, "ORDER", -1)
    assert isinstance(result, InvalidCost)
    assert result.feature == "ORDER"
    assert db.query(FeatureCreditCost).count() == 0


def test_set_cost_respects_configured_minimum(db, tenant, monkeypatch):
    monkeypatch.setattr(settings, "CREDIT_MIN_FEATURE_COST", Decimal("0.25"))
    result = costs.set_cost(db, tenant.id, "ORDER", 0.1)
    assert isinstance(result, InvalidCost)
    assert "0.25" in result.message


def test_set_cost_rejects_feature_outside_catalog(db, tenant):
    result = costs.set_cost(db, tenant.id, "TELEPORT", 1)
    assert isinstance(result, UnknownFeature)


def test_zero_cost_is_allowed(db, tenant):
    row = costs.set_cost(db, tenant.id, "TEXT_PROCESSING", 0)
    assert isinstance(row, FeatureCreditCost)
    assert costs.get_cost(db, tenant.id, "TEXT_PROCESSING") == Decimal("0")


def test_set_cost_updates_existing_row(db, tenant):
    costs.set_cost(db, tenant.id, "ORDER", 2)
    costs.set_cost(db, tenant.id, "ORDER", 4)
    rows = db.query(FeatureCreditCost).filter(FeatureCreditCost.client_id == tenant.id).all()
    assert len(rows) == 1
    assert Decimal(rows[0].cost) == Decimal("4")


def test_deactivated_cost_falls_back_to_default(db, tenant):
    costs.set_cost(db, tenant.id, "ORDER", 5)
    assert costs.deactivate_cost(db, tenant.id, "order") is True
    assert costs.get_cost(db, tenant.id, "ORDER") == Decimal("1")
    # Already inactive
    assert costs.deactivate_cost(db, tenant.id, "ORDER") is False


def test_set_cost_reactivates_row(db, tenant):
    costs.set_cost(db, tenant.id, "ORDER", 5)
    costs.deactivate_cost(db, tenant.id, "ORDER")
    costs.set_cost(db, tenant.id, "ORDER", 6)
    assert costs.get_cost(db, tenant.id, "ORDER") == Decimal("6")


def test_bulk_set_costs_is_all_or_nothing(db, tenant):
    result = costs.bulk_set_costs(db, tenant.id, [("ORDER", 2), ("WHATSAPP", -1)])
    assert isinstance(result, InvalidCost)
    assert db.query(FeatureCreditCost).count() == 0

    rows = costs.bulk_set_costs(db, tenant.id, [("ORDER", 2), ("WHATSAPP", 0.5)])
    assert [row.feature for row in rows] == ["ORDER", "WHATSAPP"]
    assert costs.get_cost(db, tenant.id, "WHATSAPP") == Decimal("0.5")


def test_seed_default_costs_is_idempotent(db, tenant):
    costs.set_cost(db, tenant.id, "ORDER", 3)
    assert costs.seed_default_costs(db, tenant.id) == 3
    assert costs.seed_default_costs(db, tenant.id) == 0
    # The custom row survives seeding
    assert costs.get_cost(db, tenant.id, "ORDER") == Decimal("3")


def test_list_costs_marks_defaults_and_customs(db, tenant):
    costs.set_cost(db, tenant.id, "IMAGE_PROCESSING", 1.5)
    listing = {item["feature"]: item for item in costs.list_costs(db, tenant.id)}
    assert set(listing) == {"ORDER", "WHATSAPP", "IMAGE_PROCESSING", "TEXT_PROCESSING"}
    assert listing["IMAGE_PROCESSING"]["cost"] == 1.5
    assert listing["IMAGE_PROCESSING"]["default_cost"] == 2.0
    assert listing["IMAGE_PROCESSING"]["is_default"] is False
    assert listing["ORDER"]["is_default"] is True
    assert listing["ORDER"]["updated_at"] is None


def test_list_costs_entry_shape(db, tenant):
    listing = costs.list_costs(db, tenant.id)
    assert {frozenset(item) for item in listing} == {
        frozenset({"feature", "cost", "default_cost", "is_default", "updated_at"})
    }


def test_list_costs_falls_back_to_default_after_deactivation(db, tenant):
    costs.set_cost(db, tenant.id, "WHATSAPP", 4)
    assert costs.deactivate_cost(db, tenant.id, "WHATSAPP") is True
    listing = {item["feature"]: item for item in costs.list_costs(db, tenant.id)}
    assert listing["WHATSAPP"]["is_default"] is True
    assert listing["WHATSAPP"]["cost"] == 1.0
    assert listing["WHATSAPP"]["updated_at"] is None
