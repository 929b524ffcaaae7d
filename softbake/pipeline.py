"""Ordered step runner with cooperative cancellation.

A step is any object with ``run(state) -> StepAction``. Steps may also
implement ``cancel()`` (called from another thread when the build is
cancelled while they run) and ``cleanup(state)`` (called in reverse order
once the pipeline stops, for every step that was started).

Example::

    runner = Runner([StepCreateSSHKey(), StepCreateInstance()])
    runner.run(state)

    # from another thread
    runner.cancel()
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from loguru import logger

from softbake.core.exceptions import StepError
from softbake.state import StepAction

if TYPE_CHECKING:
    from softbake.state import BuildState


class Step(Protocol):
    """One unit of provisioning work."""

    def run(self, state: BuildState) -> StepAction: ...


@runtime_checkable
class Cancellable(Protocol):
    """Step can be asked to stop early while its run() is in flight."""

    def cancel(self) -> None: ...


@runtime_checkable
class Cleanable(Protocol):
    """Step owns resources that must be released once the pipeline stops."""

    def cleanup(self, state: BuildState) -> None: ...


def step_name(step: Step) -> str:
    return getattr(step, "name", None) or type(step).__name__


class Runner:
    """Runs steps in declared order against one BuildState.

    The loop advances only while steps return CONTINUE. Exceptions raised
    by a step are recorded in ``state.error`` unchanged and stop the loop
    like HALT_WITH_ERROR.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self.steps: tuple[Step, ...] = tuple(steps)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._done.set()
        self._state: BuildState | None = None
        self._current: Step | None = None

    @property
    def running(self) -> bool:
        return not self._done.is_set()

    def run(self, state: BuildState) -> None:
        with self._lock:
            if self._state is not None:
                raise RuntimeError("Runner is already running")
            self._state = state
            self._done.clear()

        started: list[Step] = []
        try:
            for step in self.steps:
                with self._lock:
                    if state.is_cancelled:
                        logger.info(f"Build cancelled, not starting {step_name(step)}")
                        break
                    self._current = step

                started.append(step)
                action = self._run_step(step, state)

                with self._lock:
                    self._current = None

                if action is not StepAction.CONTINUE:
                    logger.debug(f"Pipeline stopped at {step_name(step)}: {action.value}")
                    break

            self._cleanup(started, state)
        finally:
            with self._lock:
                self._current = None
                self._state = None
            self._done.set()

    def _run_step(self, step: Step, state: BuildState) -> StepAction:
        name = step_name(step)
        logger.debug(f"Running step {name}")
        try:
            action = step.run(state)
        except Exception as e:
            logger.error(f"Step {name} raised {type(e).__name__}: {e}")
            if state.error is None:
                state.error = e
            return StepAction.HALT_WITH_ERROR

        if action is StepAction.HALT_WITH_ERROR and state.error is None:
            state.error = StepError(name)
        return action

    def _cleanup(self, started: list[Step], state: BuildState) -> None:
        for step in reversed(started):
            if not isinstance(step, Cleanable):
                continue
            try:
                step.cleanup(state)
            except Exception as e:
                logger.warning(f"Cleanup of {step_name(step)} failed: {e}")

    def cancel(self, timeout: float | None = None) -> bool:
        """Request cancellation and wait for run() to return.

        Returns:
            True once the runner is idle, False if *timeout* elapsed first.
        """
        with self._lock:
            state = self._state
            if state is None:
                return True
            state.cancelled.set()
            current = self._current

        if current is not None and isinstance(current, Cancellable):
            logger.debug(f"Cancelling step {step_name(current)}")
            current.cancel()
        return self._done.wait(timeout)
