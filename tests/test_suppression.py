import threading
from pathlib import Path

import pytest

from xmlwatcher.watchdog.suppression import SuppressionRegistry


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_register_then_consume_returns_true_once():
    registry = SuppressionRegistry(ttl=2.0)
    registry.register("/tmp/w/a.xml")

    assert registry.consume_if_present("/tmp/w/a.xml") is True
    assert registry.consume_if_present("/tmp/w/a.xml") is False
    assert len(registry) == 0


def test_consume_unknown_path():
    assert SuppressionRegistry().consume_if_present("/tmp/w/a.xml") is False


def test_str_and_path_keys_are_equivalent():
    registry = SuppressionRegistry()
    registry.register(Path("/tmp/w/a.xml"))

    assert registry.consume_if_present("/tmp/w/a.xml")


def test_only_exact_path_is_suppressed():
    registry = SuppressionRegistry()
    registry.register("/tmp/w/a.xml")

    assert not registry.consume_if_present("/tmp/w/b.xml")
    assert registry.is_suppressed("/tmp/w/a.xml")


def test_expired_entry_is_not_consumed():
    clock = FakeClock()
    registry = SuppressionRegistry(ttl=2.0, clock=clock)
    registry.register("/tmp/w/a.xml")

    clock.now += 2.5

    assert "/tmp/w/a.xml" not in registry
    assert registry.consume_if_present("/tmp/w/a.xml") is False
    assert registry.stats['expired'] == 1


def test_register_refreshes_expiry():
    clock = FakeClock()
    registry = SuppressionRegistry(ttl=2.0, clock=clock)
    registry.register("/tmp/w/a.xml")
    clock.now += 1.5
    registry.register("/tmp/w/a.xml")
    clock.now += 1.5

    assert registry.consume_if_present("/tmp/w/a.xml")


def test_per_entry_ttl():
    clock = FakeClock()
    registry = SuppressionRegistry(ttl=2.0, clock=clock)
    registry.register("/tmp/w/a.xml", ttl=10.0)
    clock.now += 5

    assert registry.consume_if_present("/tmp/w/a.xml")


def test_purge_expired():
    clock = FakeClock()
    registry = SuppressionRegistry(ttl=1.0, clock=clock)
    registry.register("/tmp/w/a.xml")
    registry.register("/tmp/w/b.xml", ttl=5.0)
    clock.now += 2

    assert registry.purge_expired() == 1
    assert len(registry) == 1
    assert registry.is_suppressed("/tmp/w/b.xml")


def test_invalid_ttl():
    with pytest.raises(ValueError):
        SuppressionRegistry(ttl=0)


def test_concurrent_consumers_consume_exactly_once():
    registry = SuppressionRegistry(ttl=30.0)
    rounds = 200
    wins = []
    lock = threading.Lock()

    for i in range(rounds):
        registry.register(f"/tmp/w/{i}.xml")

    def consumer():
        for i in range(rounds):
            if registry.consume_if_present(f"/tmp/w/{i}.xml"):
                with lock:
                    wins.append(i)

    threads = [threading.Thread(target=consumer) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(wins) == list(range(rounds))
