"""Unit tests for core.reader.retry_policy module."""

from __future__ import annotations

import pytest

from core.reader.retry_policy import RetryPolicy
from models.playback_models import ReaderSettings


def test_third_consecutive_failure_is_fatal_with_default_budget() -> None:
    policy = RetryPolicy()

    assert policy.should_retry(0) is True
    assert policy.should_retry(1) is True
    assert policy.should_retry(2) is False


@pytest.mark.parametrize("max_retries", [0, 1])
def test_small_budgets_never_retry(max_retries: int) -> None:
    assert RetryPolicy(max_retries=max_retries).should_retry(0) is False


@pytest.mark.parametrize("error", ["interrupted", "canceled", "cancelled", " Interrupted "])
def test_interruptions_are_recognised(error: str) -> None:
    assert RetryPolicy.is_interruption(error) is True


@pytest.mark.parametrize("error", ["network", "synthesis-failed", ""])
def test_other_errors_are_not_interruptions(error: str) -> None:
    assert RetryPolicy.is_interruption(error) is False


def test_from_settings_copies_limits() -> None:
    policy = RetryPolicy.from_settings(ReaderSettings(max_retries=5, retry_delay=1.5))

    assert policy.max_retries == 5
    assert policy.delay == 1.5


def test_negative_values_are_rejected() -> None:
    with pytest.raises(ValueError, match="max_retries"):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError, match="delay"):
        RetryPolicy(delay=-0.1)
