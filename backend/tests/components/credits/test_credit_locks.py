"""Per-client lock registry."""

from shipcredits.components.credits import locks


def test_same_client_always_gets_the_same_lock():
    assert locks._lock_for("client-a") is locks._lock_for("client-a")


def test_lock_pool_does_not_grow_with_clients():
    seen = {id(locks._lock_for(f"tenant-{index}")) for index in range(5000)}
    assert len(seen) <= locks.LOCK_STRIPES
    assert len(locks._stripes) == locks.LOCK_STRIPES


def test_critical_section_releases_on_error():
    try:
        with locks.client_critical_section("client-b"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert locks._lock_for("client-b").acquire(blocking=False)
    locks._lock_for("client-b").release()
