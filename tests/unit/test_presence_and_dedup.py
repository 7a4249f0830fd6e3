from __future__ import annotations

import pytest

from market_chat.infrastructure.dedup import RecentKeys, RecentResults
from market_chat.infrastructure.ws.presence import PresenceRegistry


def test_join_and_resolve():
    presence: PresenceRegistry[object] = PresenceRegistry()
    handle = object()

    assert presence.join(42, handle) is None
    assert presence.resolve(42) is handle
    assert 42 in presence
    assert len(presence) == 1


def test_last_join_wins_and_stale_leave_is_noop():
    presence: PresenceRegistry[object] = PresenceRegistry()
    first, second = object(), object()
    presence.join(42, first)

    assert presence.join(42, second) is first
    assert presence.leave(first) is None
    assert presence.resolve(42) is second

    assert presence.leave(second) == 42
    assert presence.resolve(42) is None
    assert presence.online_users() == []


def test_leave_unknown_handle():
    presence: PresenceRegistry[object] = PresenceRegistry()
    assert presence.leave(object()) is None


def test_recent_keys_evicts_oldest_first():
    keys = RecentKeys(capacity=3)
    for k in ("a", "b", "c", "d"):
        keys.add(k)

    assert "a" not in keys
    assert all(k in keys for k in ("b", "c", "d"))
    assert len(keys) == 3


def test_recent_keys_check_and_add():
    keys = RecentKeys(capacity=2)

    assert keys.check_and_add("m1") is False
    assert keys.check_and_add("m1") is True
    keys.discard("m1")
    assert keys.check_and_add("m1") is False


def test_recent_keys_default_capacity():
    keys = RecentKeys()
    for i in range(250):
        keys.add(i)

    assert keys.capacity == 200
    assert len(keys) == 200
    assert 49 not in keys
    assert 50 in keys


def test_recent_keys_rejects_bad_capacity():
    with pytest.raises(ValueError):
        RecentKeys(capacity=0)


def test_recent_results_keep_values_and_evict_oldest():
    results: RecentResults[str] = RecentResults(capacity=2)
    results.put((42, "c1"), "first")
    results.put((42, "c2"), "second")
    results.put((7, "c1"), "third")

    assert results.get((42, "c1")) is None
    assert results.get((42, "c2")) == "second"
    assert results.get((7, "c1")) == "third"
    assert len(results) == 2

    results.discard((7, "c1"))
    assert (7, "c1") not in results
