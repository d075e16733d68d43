"""Tests for the retry helper."""

from unittest.mock import Mock

import pytest

from sturdywcdl.utils.http import ErrorClass, FetchError
from sturdywcdl.utils.retry import DEFAULT_MAX_ATTEMPTS, RetryResult, retry


def test_default_budget_is_ten():
    assert DEFAULT_MAX_ATTEMPTS == 10


def test_first_success_stops_retrying():
    operation = Mock(return_value="page")

    result = retry(operation, 5)

    assert result == RetryResult(value="page", attempts=1)
    assert result.success is True
    assert operation.call_count == 1


def test_succeeds_after_failures():
    operation = Mock(
        side_effect=[
            FetchError.transport_failure(),
            FetchError.from_status(503),
            "page",
        ]
    )

    result = retry(operation, 10)

    assert result.success is True
    assert result.value == "page"
    assert result.attempts == 3
    assert operation.call_count == 3


def test_exhaustion_returns_last_error():
    errors = [FetchError.transport_failure(), FetchError.from_status(503), FetchError.from_status(500)]
    operation = Mock(side_effect=errors)

    result = retry(operation, 3)

    assert result.success is False
    assert result.value is None
    assert result.error is errors[-1]
    assert result.error.error_class is ErrorClass.SERVER_ISSUE
    assert result.attempts == 3
    assert operation.call_count == 3


def test_uses_whole_budget():
    operation = Mock(side_effect=FetchError.from_status(403))

    result = retry(operation)

    assert operation.call_count == DEFAULT_MAX_ATTEMPTS
    assert result.error.status_code == 403


def test_other_exceptions_are_not_retried():
    operation = Mock(side_effect=KeyError("selector bug"))

    with pytest.raises(KeyError):
        retry(operation, 10)

    assert operation.call_count == 1


def test_single_attempt():
    operation = Mock(side_effect=FetchError.from_status(404))

    result = retry(operation, 1)

    assert operation.call_count == 1
    assert result.error.error_class is ErrorClass.NOT_FOUND


@pytest.mark.parametrize("attempts", [0, -1])
def test_rejects_empty_budget(attempts):
    with pytest.raises(ValueError):
        retry(Mock(), attempts)
