import pytest

from pricewatch.guard import InFlightRegistry


def test_claim_is_exclusive_until_release() -> None:
    guard = InFlightRegistry()
    assert guard.claim(7) is True
    assert guard.claim(7) is False
    assert 7 in guard
    guard.release(7)
    assert 7 not in guard
    assert guard.claim(7) is True


def test_hold_releases_on_exception() -> None:
    guard = InFlightRegistry()
    with pytest.raises(RuntimeError):
        with guard.hold(3) as claimed:
            assert claimed is True
            assert 3 in guard
            raise RuntimeError("boom")
    assert 3 not in guard


def test_hold_does_not_release_other_holder() -> None:
    guard = InFlightRegistry()
    guard.claim(5)
    with guard.hold(5) as claimed:
        assert claimed is False
    assert 5 in guard
    assert guard.snapshot() == frozenset({5})
    assert len(guard) == 1
