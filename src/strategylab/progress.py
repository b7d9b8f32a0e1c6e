"""Progress reporting and cooperative cancellation for batch runs.

Searches and leaderboard batches are synchronous. Between trials they update
a RunStatus that the caller may poll from another thread, and they stop
early once RunStatus.cancel() has been requested. An optional callback
receives a ProgressEvent after every trial.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

RunState = Literal["idle", "running", "complete", "cancelled"]


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of batch progress delivered to progress callbacks.

    Attributes:
        total: Number of trials planned; an estimate for genetic search until
            the run completes.
        completed: Number of trials finished so far.
        current: Label of the trial just finished or about to start.
        state: Batch state at the time of the event.
    """

    total: int
    completed: int
    current: str
    state: RunState


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class RunStatus:
    """Mutable status record shared between a batch run and its caller."""

    total: int = 0
    completed: int = 0
    current: str = ""
    state: RunState = "idle"
    cancel_requested: bool = False

    def cancel(self) -> None:
        """Ask the running batch to stop before its next trial."""
        self.cancel_requested = True

    @property
    def fraction_complete(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.completed / self.total)

    def snapshot(self) -> ProgressEvent:
        return ProgressEvent(
            total=self.total,
            completed=self.completed,
            current=self.current,
            state=self.state,
        )


class ProgressReporter:
    """Keeps a RunStatus current and forwards events to an optional callback.

    Args:
        total: Number of trials planned.
        status: Caller-owned status record. A private one is used when None.
        callback: Invoked synchronously with a ProgressEvent on every update.
    """

    def __init__(
        self,
        total: int,
        status: RunStatus | None = None,
        callback: ProgressCallback | None = None,
    ) -> None:
        self.status = status if status is not None else RunStatus()
        self._callback = callback
        self.status.total = total
        self.status.completed = 0
        self.status.current = ""
        self.status.state = "running"

    @property
    def cancelled(self) -> bool:
        return self.status.cancel_requested

    def started(self, label: str) -> None:
        self.status.current = label
        self._emit()

    def advance(self, label: str = "") -> None:
        self.status.completed += 1
        if label:
            self.status.current = label
        self._emit()

    def finish(self) -> None:
        """Mark the run done. A completed run settles total to the trials actually run."""
        if self.status.cancel_requested:
            self.status.state = "cancelled"
        else:
            self.status.state = "complete"
            self.status.total = self.status.completed
        self.status.current = ""
        self._emit()

    def _emit(self) -> None:
        if self._callback is not None:
            self._callback(self.status.snapshot())
