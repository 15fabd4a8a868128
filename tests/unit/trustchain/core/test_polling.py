# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from unittest.mock import Mock, call

import pytest

from trustchain.core.polling import PollTimeoutError, poll


@pytest.fixture
def sleep():
    return Mock()


def test_poll_first_attempt(sleep):
    probe = Mock(return_value="value")

    assert poll(probe, sleep=sleep) == "value"
    probe.assert_called_once_with()
    sleep.assert_not_called()


def test_poll_value_after_retries(sleep):
    probe = Mock(side_effect=[None, None, "value"])

    assert poll(probe, sleep=sleep) == "value"
    assert probe.call_count == 3
    assert sleep.call_args_list == [call(3), call(3)]


def test_poll_exhausted(sleep):
    probe = Mock(return_value=None)

    with pytest.raises(PollTimeoutError) as e:
        poll(probe, sleep=sleep)

    assert e.value.attempts == 5
    assert probe.call_count == 5
    assert sleep.call_count == 4
    assert all(c == call(3) for c in sleep.call_args_list)


def test_poll_custom_bounds(sleep):
    probe = Mock(return_value=None)

    with pytest.raises(PollTimeoutError):
        poll(probe, attempts=2, delay=0.5, sleep=sleep)

    assert probe.call_count == 2
    sleep.assert_called_once_with(0.5)


def test_poll_exception_not_retried(sleep):
    probe = Mock(side_effect=ValueError("broken"))

    with pytest.raises(ValueError, match="broken"):
        poll(probe, sleep=sleep)

    probe.assert_called_once_with()
    sleep.assert_not_called()


def test_poll_falsy_value_is_a_result(sleep):
    probe = Mock(return_value={})

    assert poll(probe, sleep=sleep) == {}
    sleep.assert_not_called()
