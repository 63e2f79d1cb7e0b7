import pytest

from app.services.deduplication import DeliveryDeduplicator, compute_dedup_key


def test_compute_dedup_key_is_stable():
    first = compute_dedup_key("pull_request", "closed", "d-1", 42, "abc")
    second = compute_dedup_key("pull_request", "closed", "d-1", 42, "abc")

    assert first == second
    assert len(first) == 64


def test_compute_dedup_key_covers_every_component():
    base = compute_dedup_key("pull_request", "closed", "d-1", 42, "abc")

    assert base != compute_dedup_key("push", "closed", "d-1", 42, "abc")
    assert base != compute_dedup_key("pull_request", "opened", "d-1", 42, "abc")
    assert base != compute_dedup_key("pull_request", "closed", "d-2", 42, "abc")
    assert base != compute_dedup_key("pull_request", "closed", "d-1", 43, "abc")
    assert base != compute_dedup_key("pull_request", "closed", "d-1", 42, "abd")


def test_check_and_insert_rejects_repeats():
    dedup = DeliveryDeduplicator(capacity=10)

    assert dedup.check_and_insert("a") is True
    assert dedup.check_and_insert("a") is False
    assert dedup.check_and_insert("b") is True
    assert len(dedup) == 2


def test_eviction_keeps_most_recent_keys():
    dedup = DeliveryDeduplicator(capacity=10, evict_fraction=0.2)

    for i in range(11):
        assert dedup.check_and_insert(f"key-{i}") is True

    assert len(dedup) == 9
    assert "key-0" not in dedup
    assert "key-1" not in dedup
    for i in range(2, 11):
        assert f"key-{i}" in dedup
    assert dedup.check_and_insert("key-10") is False
    assert dedup.check_and_insert("key-0") is True


def test_size_stays_bounded():
    dedup = DeliveryDeduplicator(capacity=50, evict_fraction=0.1)

    for i in range(1000):
        dedup.check_and_insert(f"key-{i}")

    assert len(dedup) <= 50
    assert "key-999" in dedup


def test_eviction_drops_at_least_one_key():
    dedup = DeliveryDeduplicator(capacity=3, evict_fraction=0.0)

    for key in ("a", "b", "c", "d"):
        dedup.check_and_insert(key)

    assert len(dedup) == 3
    assert "a" not in dedup


def test_invalid_configuration():
    with pytest.raises(ValueError):
        DeliveryDeduplicator(capacity=-1)
    with pytest.raises(ValueError):
        DeliveryDeduplicator(capacity=0)
    with pytest.raises(ValueError):
        DeliveryDeduplicator(capacity=10, evict_fraction=1.5)


def test_clear():
    dedup = DeliveryDeduplicator(capacity=10)
    dedup.check_and_insert("a")

    dedup.clear()

    assert len(dedup) == 0


def test_repeated_key_is_kept_over_older_keys():
    dedup = DeliveryDeduplicator(capacity=3, evict_fraction=0.0)

    for key in ("a", "b", "c"):
        dedup.check_and_insert(key)
    assert dedup.check_and_insert("a") is False
    dedup.check_and_insert("d")

    assert "a" in dedup
    assert "b" not in dedup
