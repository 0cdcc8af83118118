from decimal import Decimal

import pytest

from shipcredits.components.credits import service as ledger
from shipcredits.models.client_credit_account import ClientCreditAccount
from shipcredits.models.feature_credit_cost import FeatureCreditCost
from shipcredits.scripts import grant_credits, seed_credit_costs, verify_credit_accounts


@pytest.fixture(autouse=True)
def _scripts_use_test_db(monkeypatch, session_factory):
    for module in (grant_credits, seed_credit_costs, verify_credit_accounts):
        monkeypatch.setattr(module, "SessionLocal", session_factory)


def test_seed_credit_costs_for_active_clients(db, tenant, make_client, capsys):
    make_client(is_active=False)
    assert seed_credit_costs.main(["--with-accounts"]) == 0
    db.expire_all()
    assert db.query(FeatureCreditCost).filter(FeatureCreditCost.client_id == tenant.id).count() == 4
    assert db.query(FeatureCreditCost).count() == 4
    assert db.query(ClientCreditAccount).count() == 1
    assert "cost rows created: 4" in capsys.readouterr().out

    assert seed_credit_costs.main([]) == 0
    assert "cost rows created: 0" in capsys.readouterr().out


def test_seed_credit_costs_unknown_client(db):
    assert seed_credit_costs.main(["--client-id", "missing"]) == 2


def test_grant_credits_goes_through_the_ledger(db, tenant, capsys):
    assert grant_credits.main([tenant.id, "250.5", "--description", "Goodwill", "--actor", "ops-1"]) == 0
    assert "New balance: 250.5" in capsys.readouterr().out

    items, total = ledger.get_credit_transactions(db, tenant.id)
    assert total == 1
    assert items[0].description == "Goodwill"
    assert items[0].user_id == "ops-1"
    assert Decimal(ledger.get_client_credits(db, tenant.id).balance) == Decimal("250.5")


def test_grant_credits_failures(db, tenant):
    assert grant_credits.main(["missing", "10"]) == 2
    assert grant_credits.main([tenant.id, "abc"]) == 3
    assert grant_credits.main([tenant.id, "-1"]) == 3


def test_verify_credit_accounts_clean(db, tenant, capsys):
    ledger.add_credits(db, tenant.id, 20, "grant")
    ledger.deduct_credits(db, tenant.id, "ORDER")
    assert verify_credit_accounts.main([]) == 0
    assert "1 accounts, 0 with drift" in capsys.readouterr().out


def test_verify_credit_accounts_reports_drift(db, tenant, capsys):
    ledger.add_credits(db, tenant.id, 20, "grant")
    # Simulate a hand-patched row that bypassed the ledger
    account = ledger.get_client_credits(db, tenant.id)
    account.balance = Decimal("500")
    db.commit()

    assert verify_credit_accounts.main(["--client-id", tenant.id]) == 1
    out = capsys.readouterr().out
    assert f"DRIFT {tenant.id}" in out
    assert "total_added - total_used" in out
    assert "snapshot 20" in out
