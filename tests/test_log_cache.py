"""Tests for the request log cache."""

import threading

from newsletter_agent.core.log_cache import LogCache
from newsletter_agent.models.log import Level, LogLine


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _line(req_id: str, msg: str = "x") -> LogLine:
    return LogLine(ts="2025-01-15T00:00:00+00:00", level=Level.INFO, req_id=req_id, msg=msg)


def test_insert_is_get_or_create():
    cache = LogCache(max_entries=3)
    first = cache.insert("a")
    cache.append("a", first, _line("a"))

    again = cache.insert("a")

    assert again is first
    assert len(cache.get("a")) == 1


def test_over_capacity_evicts_least_recently_touched():
    cache = LogCache(max_entries=3)
    for req_id in ("a", "b", "c"):
        cache.insert(req_id)

    cache.insert("d")

    assert "a" not in cache
    assert cache.keys() == ["b", "c", "d"]
    assert cache.stats()["evictions"] == 1


def test_reading_promotes_entry():
    cache = LogCache(max_entries=3)
    for req_id in ("a", "b", "c"):
        cache.insert(req_id)

    assert cache.get("a") == []
    cache.insert("d")

    assert "a" in cache
    assert "b" not in cache


def test_touch_promotes_and_reports_missing():
    cache = LogCache(max_entries=2)
    cache.insert("a")
    cache.insert("b")

    assert cache.touch("a") is True
    cache.insert("c")

    assert cache.keys() == ["a", "c"]
    assert cache.touch("b") is False


def test_entries_expire_lazily():
    clock = FakeClock()
    cache = LogCache(max_entries=5, ttl_seconds=10, clock=clock)
    cache.insert("a")

    clock.now += 9.9
    assert cache.get("a") == []

    clock.now += 0.2
    assert cache.get("a") is None
    assert "a" not in cache
    assert cache.stats()["expirations"] == 1


def test_reads_do_not_extend_ttl():
    clock = FakeClock()
    cache = LogCache(max_entries=5, ttl_seconds=10, clock=clock)
    cache.insert("a")

    clock.now += 8
    cache.get("a")
    clock.now += 3

    assert cache.get("a") is None


def test_evict_expired_sweeps_only_expired():
    clock = FakeClock()
    cache = LogCache(max_entries=5, ttl_seconds=10, clock=clock)
    cache.insert("old")
    clock.now += 6
    cache.insert("new")
    clock.now += 5

    assert cache.evict_expired() == 1
    assert cache.keys() == ["new"]


def test_recreating_expired_entry_starts_fresh():
    clock = FakeClock()
    cache = LogCache(max_entries=5, ttl_seconds=10, clock=clock)
    entry = cache.insert("a")
    cache.append("a", entry, _line("a"))

    clock.now += 11
    fresh = cache.insert("a")

    assert fresh is not entry
    assert cache.get("a") == []


def test_evicted_entry_leaves_nothing_behind():
    clock = FakeClock()
    cache = LogCache(max_entries=1, ttl_seconds=10, clock=clock)
    cache.insert("a")
    cache.insert("b")

    clock.now += 20
    assert cache.evict_expired() == 1
    assert len(cache) == 0


def test_remove():
    cache = LogCache()
    cache.insert("a")

    assert cache.remove("a") is True
    assert cache.remove("a") is False


def test_concurrent_inserts_and_appends_stay_within_capacity():
    cache = LogCache(max_entries=5, ttl_seconds=60)
    workers, per_worker = 8, 50
    errors = []
    start = threading.Barrier(workers)

    def work(worker: int) -> None:
        try:
            start.wait()
            for n in range(per_worker):
                req_id = f"w{worker}-{n}"
                entry = cache.insert(req_id)
                cache.append(req_id, entry, _line(req_id, "a"))
                cache.append(req_id, entry, _line(req_id, "b"))
                cache.get(req_id)
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=work, args=(w,)) for w in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(cache) == 5
    assert len(set(cache.keys())) == 5
    assert cache.stats()["evictions"] == workers * per_worker - 5
    for req_id in cache.keys():
        assert [line.msg for line in cache.get(req_id)] == ["a", "b"]
