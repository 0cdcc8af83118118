from decimal import Decimal

from shipcredits.components.credits import accounts
from shipcredits.components.credits import service as ledger
from shipcredits.models.client_credit_account import ClientCreditAccount


def test_get_returns_none_for_unprovisioned_client(db, tenant):
    assert accounts.get(db, tenant.id) is None


def test_ensure_exists_creates_zeroed_account(db, tenant):
    account = accounts.ensure_exists(db, tenant.id)
    db.commit()
    assert account.client_id == tenant.id
    assert Decimal(account.balance) == 0
    assert Decimal(account.total_added) == 0
    assert Decimal(account.total_used) == 0


def test_ensure_exists_is_idempotent(db, tenant):
    first = accounts.ensure_exists(db, tenant.id)
    db.commit()
    second = accounts.ensure_exists(db, tenant.id)
    db.commit()
    assert first.id == second.id
    assert db.query(ClientCreditAccount).count() == 1


def test_ensure_account_commits_and_returns_account(db, tenant):
    account = ledger.ensure_account(db, tenant.id)
    db.expire_all()
    assert accounts.get(db, tenant.id).id == account.id


def test_lock_for_update_reads_fresh_values(db, tenant, session_factory):
    ledger.ensure_account(db, tenant.id)
    cached = accounts.get(db, tenant.id)
    assert Decimal(cached.balance) == 0

    other = session_factory()
    try:
        ledger.add_credits(other, tenant.id, 50, "top up from another worker")
    finally:
        other.close()

    locked = accounts.lock_for_update(db, tenant.id)
    assert locked is cached
    assert Decimal(locked.balance) == Decimal("50")
    db.rollback()


def test_client_display_name_prefers_company(db, make_client):
    row = make_client(name="Asha", company_name="Asha Couriers")
    assert accounts.client_display_name(db, row.id) == "Asha Couriers"
    plain = make_client(name="Ravi", company_name=None)
    assert accounts.client_display_name(db, plain.id) == "Ravi"
    assert accounts.client_display_name(db, "missing") is None
