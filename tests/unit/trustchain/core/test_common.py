# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from unittest.mock import Mock

import pytest

from trustchain.core.common import (
    BaseStep,
    Result,
    ResultType,
    StepFailedException,
    TrustChainException,
    run_plan,
)


class FakeStep(BaseStep):
    def __init__(self, name, skip=None, result=None, children=None):
        super().__init__(name, f"Running {name}")
        self.skip_result = skip or Result(ResultType.COMPLETED)
        self.result = result or Result(ResultType.COMPLETED)
        self._children = children or []
        self.run_calls = 0

    @property
    def children(self):
        return self._children

    def is_skip(self, status=None):
        return self.skip_result

    def run(self, status=None):
        self.run_calls += 1
        return self.result


class TestRunPlan:
    def test_run_all_steps(self, console):
        first = FakeStep("first")
        second = FakeStep("second")

        results = run_plan([first, second], console)

        assert first.run_calls == 1
        assert second.run_calls == 1
        assert results["FakeStep"].result_type == ResultType.COMPLETED

    def test_skipped_step_is_not_run(self, console):
        step = FakeStep("skipped", skip=Result(ResultType.SKIPPED, "already done"))

        results = run_plan([step], console)

        assert step.run_calls == 0
        assert results["FakeStep"].result_type == ResultType.SKIPPED

    def test_failed_check_stops_plan(self, console):
        cause = TrustChainException("check failed", "do something")
        first = FakeStep("first", skip=Result(ResultType.FAILED, cause))
        second = FakeStep("second")

        with pytest.raises(StepFailedException) as e:
            run_plan([first, second], console)

        assert e.value.step_name == "first"
        assert e.value.cause is cause
        assert e.value.__cause__ is cause
        assert e.value.hint == "do something"
        assert first.run_calls == 0
        assert second.run_calls == 0

    def test_failed_run_stops_plan(self, console):
        first = FakeStep("first", result=Result(ResultType.FAILED, "boom"))
        second = FakeStep("second")

        with pytest.raises(StepFailedException) as e:
            run_plan([first, second], console)

        assert str(e.value) == "first: boom"
        assert e.value.__cause__ is None
        assert second.run_calls == 0

    def test_children_run_after_parent(self, console):
        child = FakeStep("child")
        parent = FakeStep("parent", children=[child])

        run_plan([parent], console)

        assert parent.run_calls == 1
        assert child.run_calls == 1

    def test_children_not_run_when_parent_skipped(self, console):
        child = FakeStep("child")
        parent = FakeStep(
            "parent", skip=Result(ResultType.SKIPPED), children=[child]
        )

        run_plan([parent], console)

        assert child.run_calls == 0

    def test_children_not_run_when_parent_failed(self, console):
        child = FakeStep("child")
        parent = FakeStep(
            "parent", result=Result(ResultType.FAILED, "boom"), children=[child]
        )

        with pytest.raises(StepFailedException):
            run_plan([parent], console)

        assert child.run_calls == 0

    def test_error_raised_by_run_names_step(self, console):
        error = ConnectionError("refused")
        first = FakeStep("first")
        first.run = Mock(side_effect=error)
        second = FakeStep("second")

        with pytest.raises(StepFailedException) as e:
            run_plan([first, second], console)

        assert e.value.step_name == "first"
        assert e.value.cause is error
        assert e.value.__cause__ is error
        assert str(e.value) == "first: refused"
        assert second.run_calls == 0

    def test_error_raised_by_check_names_step(self, console):
        error = ValueError("unexpected")
        step = FakeStep("check")
        step.is_skip = Mock(side_effect=error)

        with pytest.raises(StepFailedException) as e:
            run_plan([step], console)

        assert e.value.step_name == "check"
        assert e.value.cause is error
        assert step.run_calls == 0

    def test_child_failure_is_not_rewrapped(self, console):
        child = FakeStep("child", result=Result(ResultType.FAILED, "boom"))
        parent = FakeStep("parent", children=[child])

        with pytest.raises(StepFailedException) as e:
            run_plan([parent], console)

        assert e.value.step_name == "child"


class TestBaseStep:
    def test_update_status(self):
        step = BaseStep("name", "Doing things")
        status = Mock()

        step.update_status(status, "done")

        status.update.assert_called_once_with("Doing things ... done")

    def test_update_status_without_status(self):
        step = BaseStep("name", "Doing things")
        step.update_status(None, "done")

    def test_run_not_implemented(self):
        with pytest.raises(NotImplementedError):
            BaseStep("name").run()
