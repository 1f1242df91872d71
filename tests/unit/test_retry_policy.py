# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from constants import (
    EXIT_RECONNECT_EXHAUSTED,
    EXIT_STREAM_OPEN_FAILED,
    MAX_CONNECT_ATTEMPTS,
    RECONNECT_DELAY_S,
)
from orchestrator.retry import RetryDecision, decide, should_retry


@pytest.mark.parametrize("attempts", [1, 2, 3, 4])
def test_retry_allowed_below_limit(attempts: int) -> None:
    assert should_retry(attempts) is True


@pytest.mark.parametrize("attempts", [5, 6, 50])
def test_retry_refused_at_and_above_limit(attempts: int) -> None:
    assert should_retry(attempts) is False


def test_limit_is_five_with_ten_second_backoff() -> None:
    assert MAX_CONNECT_ATTEMPTS == 5
    assert RECONNECT_DELAY_S == 10.0


def test_decide_uses_fixed_delay() -> None:
    assert decide(1) == RetryDecision(retry=True, delay_s=10.0, attempts=1)
    assert decide(4) == RetryDecision(retry=True, delay_s=10.0, attempts=4)


def test_decide_gives_up_without_delay() -> None:
    assert decide(5) == RetryDecision(retry=False, delay_s=0.0, attempts=5)


def test_decide_honours_overrides() -> None:
    decision = decide(2, delay_s=0.5, max_attempts=2)

    assert decision.retry is False

    decision = decide(1, delay_s=0.5, max_attempts=2)

    assert decision.retry is True
    assert decision.delay_s == 0.5


def test_both_fatal_conditions_exit_with_one() -> None:
    assert EXIT_RECONNECT_EXHAUSTED == 1
    assert EXIT_STREAM_OPEN_FAILED == 1
