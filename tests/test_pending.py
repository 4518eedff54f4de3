"""Tests for the expiring in-memory store of pending TOTP state."""

from app.services.pending import ExpiringStore, PendingEnrollment, PendingLoginChallenge


def _enrollment(principal_id, now, ttl=600, secret="JBSWY3DPEHPK3PXP"):
    return PendingEnrollment(principal_id=principal_id, secret=secret, created_at=now, expires_at=now + ttl)


def test_get_before_expiry(clock):
    store = ExpiringStore(clock=clock)
    store.put(_enrollment("p1", clock()))
    clock.advance(599)
    assert store.get("p1").secret == "JBSWY3DPEHPK3PXP"


def test_expired_entry_reported_without_sweep(clock):
    store = ExpiringStore(clock=clock)
    store.put(_enrollment("p1", clock()))
    clock.advance(600)
    assert store.get("p1") is None
    assert len(store) == 0


def test_put_overwrites_previous_entry(clock):
    store = ExpiringStore(clock=clock)
    store.put(_enrollment("p1", clock(), secret="AAAA"))
    store.put(_enrollment("p1", clock(), secret="BBBB"))
    assert store.get("p1").secret == "BBBB"
    assert len(store) == 1


def test_pop_and_discard(clock):
    store = ExpiringStore(clock=clock)
    store.put(PendingLoginChallenge("p1", "c1", clock(), clock() + 300))
    assert store.pop("p1").challenge_id == "c1"
    assert store.get("p1") is None
    store.discard("missing")


def test_purge_expired(clock):
    store = ExpiringStore(clock=clock)
    store.put(_enrollment("old", clock(), ttl=10))
    store.put(_enrollment("new", clock(), ttl=1000))
    clock.advance(20)
    assert store.purge_expired() == 1
    assert store.get("new") is not None


def test_repr_hides_secret(clock):
    assert "JBSWY3DPEHPK3PXP" not in repr(_enrollment("p1", clock()))
