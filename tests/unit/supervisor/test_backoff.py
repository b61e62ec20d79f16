import pytest

from ocdesk.supervisor import ExponentialBackoff


class TestExponentialBackoff:
    def test_default_schedule_doubles_from_one_second(self) -> None:
        assert list(ExponentialBackoff().schedule(3)) == [1.0, 2.0, 4.0]

    def test_capped_at_max_delay(self) -> None:
        backoff = ExponentialBackoff(base=1.0, max_delay=5.0)
        assert backoff.delay(10) == 5.0

    def test_jitter_stays_within_spread(self) -> None:
        backoff = ExponentialBackoff(base=4.0, jitter=0.5)
        for _ in range(50):
            assert 3.0 <= backoff.delay(0) <= 5.0

    def test_frozen(self) -> None:
        backoff = ExponentialBackoff()
        with pytest.raises(AttributeError):
            backoff.base = 2.0  # pyright: ignore[reportAttributeAccessIssue]
