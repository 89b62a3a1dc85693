"""
Unit tests for the bounded log store.
"""

from conftest import make_record

from tcp_log_viewer.log_store import (
    DEFAULT_MAX_RECORDS,
    MIN_MAX_RECORDS,
    BoundedLogStore,
    clamp_max_records,
)


def fill(store, n, prefix="m"):
    infos = []
    for i in range(n):
        infos.append(store.add_record(make_record(f"{prefix}{i}")))
    return infos


class TestCapacity:
    """Capacity floor and eviction chunk size."""

    def test_floor_is_enforced(self):
        assert BoundedLogStore(5).max_records == MIN_MAX_RECORDS
        assert clamp_max_records("nonsense") == DEFAULT_MAX_RECORDS

    def test_eviction_chunk_is_ten_percent_floored(self):
        assert BoundedLogStore(100).eviction_chunk() == 10
        assert BoundedLogStore(105).eviction_chunk() == 10
        assert BoundedLogStore(1000).eviction_chunk() == 100

    def test_no_eviction_until_full(self):
        store = BoundedLogStore(100)
        infos = fill(store, 100)
        assert not any(i.evicted for i in infos)
        assert store.count() == 100

    def test_eviction_on_overflow(self):
        store = BoundedLogStore(100)
        fill(store, 100)
        info = store.add_record(make_record("new"))
        assert info.evicted is True
        assert info.evicted_count == 10
        assert info.capacity == 100
        assert [r.message for r in info.evicted_records] == [f"m{i}" for i in range(10)]
        assert store.count() == 91
        assert store.get_all()[0].message == "m10"
        assert store.get_all()[-1].message == "new"

    def test_count_never_exceeds_capacity(self):
        store = BoundedLogStore(100)
        for i in range(1000):
            store.add_record(make_record(str(i)))
            assert store.count() <= 100


class TestShrink:
    """Lowering the capacity takes effect on the next insertion."""

    def test_shrink_is_not_retroactive(self):
        store = BoundedLogStore(200)
        fill(store, 150)
        store.set_max_records(100)
        assert store.count() == 150
        assert store.max_records == 100

    def test_next_insertion_restores_bound(self):
        store = BoundedLogStore(200)
        fill(store, 150)
        store.set_max_records(100)
        info = store.add_record(make_record("new"))
        assert info.evicted_count == 51
        assert store.count() == 100


class TestAccess:
    """Copy semantics and clearing."""

    def test_get_all_returns_copy(self):
        store = BoundedLogStore(100)
        fill(store, 3)
        snapshot = store.get_all()
        snapshot.clear()
        assert store.count() == 3

    def test_clear(self):
        store = BoundedLogStore(100)
        fill(store, 3)
        store.clear()
        assert store.count() == 0
        assert store.get_all() == []
