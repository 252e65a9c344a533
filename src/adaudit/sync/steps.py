"""Sync step tracker - ordered phases with progress counters.

A tracker holds the phases of one streamed operation ("Campaigns",
"Ad Sets", "Creatives" for an account sync; "delete", "fetch", "clear",
"download" for an image re-download). Every mutation goes through
``apply`` and re-derives the aggregate totals from the whole list.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable


class StepStatus(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


# Steps whose count contributes to the synced total.
COUNTED_STATUSES = frozenset({StepStatus.LOADING, StepStatus.SUCCESS})


@dataclass
class SyncStep:
    name: str
    status: StepStatus = StepStatus.PENDING
    count: int | None = None
    total: int | None = None
    error: str | None = None
    message: str | None = None


@dataclass
class StepPatch:
    """Fields to change on one step; ``None`` leaves a field untouched."""

    name: str | None = None
    status: StepStatus | None = None
    count: int | None = None
    total: int | None = None
    error: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class SyncProgress:
    total_items: int = 0
    synced_items: int = 0

    @property
    def percent(self) -> int:
        if self.total_items <= 0:
            return 0
        return min(100, round(self.synced_items * 100 / self.total_items))


def compute_progress(steps: Iterable[SyncStep]) -> SyncProgress:
    """Aggregate totals over every step.

    ``total_items`` sums each step's total, falling back to its count;
    ``synced_items`` sums counts of loading and successful steps only.
    """
    total = 0
    synced = 0
    for step in steps:
        if step.total is not None:
            total += step.total
        elif step.count is not None:
            total += step.count
        if step.status in COUNTED_STATUSES and step.count is not None:
            synced += step.count
    return SyncProgress(total_items=total, synced_items=synced)


class StepTracker:
    """In-memory step list for one streamed operation."""

    def __init__(
        self,
        names: Iterable[str],
        on_change: Callable[[list[SyncStep], SyncProgress], None] | None = None,
    ):
        self._names = list(names)
        self._steps: list[SyncStep] = [SyncStep(name=n) for n in self._names]
        self._progress = SyncProgress()
        self.current_index = 0
        self.on_change = on_change

    @property
    def steps(self) -> list[SyncStep]:
        return [replace(s) for s in self._steps]

    @property
    def progress(self) -> SyncProgress:
        return self._progress

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> SyncStep:
        return replace(self._steps[index])

    def reset(self) -> None:
        self._steps = [SyncStep(name=n) for n in self._names]
        self._progress = SyncProgress()
        self.current_index = 0
        self._notify()

    def apply(self, index: int, patch: StepPatch) -> tuple[list[SyncStep], SyncProgress]:
        """Apply ``patch`` to step ``index`` and recompute the aggregate.

        Out-of-order patches are applied as they come; an index past the
        end grows the list with pending placeholders.
        """
        if index < 0:
            raise IndexError(f"step index must be >= 0, got {index}")
        while len(self._steps) <= index:
            self._steps.append(SyncStep(name=f"Step {len(self._steps) + 1}"))

        step = self._steps[index]
        if patch.name is not None:
            step.name = patch.name
        if patch.count is not None:
            step.count = patch.count
        if patch.total is not None:
            step.total = patch.total
        if patch.message is not None:
            step.message = patch.message
        if patch.status is not None:
            step.status = patch.status
            if patch.status is StepStatus.ERROR:
                step.error = patch.error
            else:
                step.error = None
                if patch.status is StepStatus.SUCCESS and step.total is None:
                    step.total = step.count
        if patch.status is StepStatus.LOADING:
            self.current_index = index

        self._progress = compute_progress(self._steps)
        self._notify()
        return self.steps, self._progress

    def fail(self, index: int, message: str) -> tuple[list[SyncStep], SyncProgress]:
        return self.apply(index, StepPatch(status=StepStatus.ERROR, error=message))

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.steps, self._progress)
