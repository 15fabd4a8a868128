# SPDX-FileCopyrightText: 2026 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import enum
import logging
from typing import Any, Callable

from rich.console import Console
from rich.status import Status

LOG = logging.getLogger(__name__)


class TrustChainException(Exception):
    """Base exception for trustchain."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class StepFailedException(TrustChainException):
    """Raised by run_plan when a step reports a failure."""

    def __init__(self, step_name: str, cause: Any = None):
        self.step_name = step_name
        self.cause = cause
        hint = getattr(cause, "hint", None)
        super().__init__(f"{step_name}: {cause}", hint)


class ResultType(enum.Enum):
    COMPLETED = 0
    FAILED = 1
    SKIPPED = 2


class Result:
    """The result of running a step."""

    def __init__(self, result_type: ResultType, message: Any = None):
        """Creates a new result.

        :param result_type: type of the result
        :param message: message or exception describing the result
        """
        self.result_type = result_type
        self.message = message

    def __repr__(self) -> str:
        """Return a string representation of the Result."""
        return f"Result({self.result_type.name}, {self.message!r})"


class BaseStep:
    """A step defines a logical unit of work to be done as part of a plan.

    A step determines whether it needs to be run with `is_skip`, performs its
    work with `run` and may carry `children`, an ordered list of steps which
    are only run when the step itself was not skipped.

    `reads` and `writes` name the ProvisioningContext fields the step depends
    on and updates.
    """

    reads: tuple[str, ...] = ()
    writes: tuple[str, ...] = ()

    def __init__(self, name: str, description: str = ""):
        """Initialise the BaseStep.

        :param name: the name of the step
        :param description: a short description of the step
        """
        self.name = name
        self.description = description

    @property
    def children(self) -> list["BaseStep"]:
        """Steps to run after this one when it is not skipped."""
        return []

    @property
    def status(self) -> str:
        """Status message prefix used while the step runs."""
        return f"{self.description} ... "

    def update_status(self, status: Status | None, msg: str):
        """Update status if status is provided."""
        if status is not None:
            status.update(self.status + msg)

    def is_skip(self, status: Status | None = None) -> Result:
        """Determines if the step should be skipped or not.

        :return: ResultType.SKIPPED if the Step should be skipped,
                ResultType.COMPLETED or ResultType.FAILED otherwise
        """
        return Result(ResultType.COMPLETED)

    def run(self, status: Status | None = None) -> Result:
        """Run the step to completion.

        Invoked when the step is run and returns a ResultType to indicate
        whether the step succeeded or not.
        """
        raise NotImplementedError


def _raise_for_result(step: BaseStep, result: Result):
    cause = result.message
    if isinstance(cause, BaseException):
        raise StepFailedException(step.name, cause) from cause
    raise StepFailedException(step.name, cause)


def _call_step(step: BaseStep, method: Callable[..., Result], status: Status):
    try:
        return method(status)
    except StepFailedException:
        raise
    except Exception as e:
        LOG.debug(f"Step {step.name!r} raised an error", exc_info=True)
        raise StepFailedException(step.name, e) from e


def run_plan(plan: list[BaseStep], console: Console) -> dict[str, Result]:
    """Run the steps of a plan in order.

    Stops at the first failing step by raising StepFailedException, which
    also wraps any exception escaping a step's check or run.

    :return: the results of the plan keyed by step class name
    """
    results = {}
    for step in plan:
        LOG.debug(f"Starting step {step.name!r}")
        with console.status(step.status) as status:
            skip_result = _call_step(step, step.is_skip, status)
            if skip_result.result_type == ResultType.FAILED:
                LOG.debug(f"Step {step.name!r} failed its check: {skip_result}")
                _raise_for_result(step, skip_result)
            if skip_result.result_type == ResultType.SKIPPED:
                results[step.__class__.__name__] = skip_result
                LOG.debug(f"Skipping step {step.name!r}")
                continue

            LOG.debug(f"Running step {step.name!r}")
            result = _call_step(step, step.run, status)
            results[step.__class__.__name__] = result
            LOG.debug(
                f"Finished running step {step.name!r}. Result: {result.result_type}"
            )

        if result.result_type == ResultType.FAILED:
            _raise_for_result(step, result)

        if step.children:
            results.update(run_plan(step.children, console))

    return results
