"""Per-change, per-task and per-run outcomes.

TaskResult is filled in while a task runs; RunResult is built once at the end
of the run from the ordered task results and does not change afterwards.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from patchrun.lib.config import RepoTask
from patchrun.lib.errors import PatchrunError
from patchrun.lib.gerrit import ResolvedChange
from patchrun.lib.validate import validate_before_write

# Exit codes above 125 are reserved by shells
MAX_EXIT_CODE = 125


class ChangeOutcome(Enum):
    APPLIED = "applied"
    FAILED = "failed"


class TaskOutcome(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ChangeResult:
    change_id: str
    outcome: ChangeOutcome
    patchset: int | None = None
    fetch_ref: str | None = None
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def applied(cls, change: ResolvedChange) -> "ChangeResult":
        return cls(
            change_id=change.change_id,
            outcome=ChangeOutcome.APPLIED,
            patchset=change.patchset_number,
            fetch_ref=change.fetch_ref,
        )

    @classmethod
    def failed(cls, change_id: str, error: PatchrunError,
               change: ResolvedChange | None = None) -> "ChangeResult":
        return cls(
            change_id=change_id,
            outcome=ChangeOutcome.FAILED,
            patchset=change.patchset_number if change else None,
            fetch_ref=change.fetch_ref if change else None,
            error=str(error),
            error_kind=error.kind,
        )

    def to_dict(self) -> dict:
        return {
            "change_id": self.change_id,
            "outcome": self.outcome.value,
            "patchset": self.patchset,
            "fetch_ref": self.fetch_ref,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass
class TaskResult:
    """Outcome of one RepoTask."""
    task: RepoTask
    changes: list[ChangeResult] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None
    error_kind: str | None = None

    def record(self, change: ChangeResult) -> None:
        self.changes.append(change)

    def abort(self, error: Exception) -> None:
        """Mark the task as failed before (or while) its changes ran."""
        self.error = str(error)
        self.error_kind = getattr(error, "kind", type(error).__name__)

    def skip(self, error: Exception) -> None:
        self.abort(error)
        self.skipped = True

    @property
    def succeeded(self) -> tuple[str, ...]:
        return tuple(c.change_id for c in self.changes if c.outcome is ChangeOutcome.APPLIED)

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(c.change_id for c in self.changes if c.outcome is ChangeOutcome.FAILED)

    @property
    def outcome(self) -> TaskOutcome:
        if self.skipped:
            return TaskOutcome.SKIPPED
        if self.error is not None:
            return TaskOutcome.PARTIAL if self.succeeded else TaskOutcome.FAILED
        if not self.failed:
            return TaskOutcome.SUCCESS
        return TaskOutcome.PARTIAL if self.succeeded else TaskOutcome.FAILED

    def to_dict(self) -> dict:
        return {
            "path": self.task.local_path,
            "project": self.task.backend_repo_name,
            "outcome": self.outcome.value,
            "error": self.error,
            "error_kind": self.error_kind,
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass(frozen=True)
class RunResult:
    """Aggregate of every task in a run, in plan order."""
    command: str
    dry_run: bool
    tasks: tuple[TaskResult, ...]
    started_at: datetime
    finished_at: datetime

    @property
    def per_repo(self) -> dict[RepoTask, TaskResult]:
        return {r.task: r for r in self.tasks}

    def _count(self, *outcomes: TaskOutcome) -> int:
        return sum(1 for r in self.tasks if r.outcome in outcomes)

    @property
    def total_success(self) -> int:
        return self._count(TaskOutcome.SUCCESS)

    @property
    def total_failure(self) -> int:
        return self._count(TaskOutcome.PARTIAL, TaskOutcome.FAILED)

    @property
    def total_skipped(self) -> int:
        return self._count(TaskOutcome.SKIPPED)

    @property
    def exit_code(self) -> int:
        """0 on full success, otherwise the number of failed tasks (capped)."""
        return min(self.total_failure, MAX_EXIT_CODE)

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(timespec="seconds"),
            "finished_at": self.finished_at.isoformat(timespec="seconds"),
            "total_success": self.total_success,
            "total_failure": self.total_failure,
            "total_skipped": self.total_skipped,
            "tasks": [r.to_dict() for r in self.tasks],
        }


class RunResultBuilder:
    """Collects task results as the run progresses."""

    def __init__(self, command: str, dry_run: bool):
        self.command = command
        self.dry_run = dry_run
        self.started_at = datetime.now()
        self._tasks: list[TaskResult] = []

    def add(self, result: TaskResult) -> None:
        self._tasks.append(result)

    def build(self) -> RunResult:
        return RunResult(
            command=self.command,
            dry_run=self.dry_run,
            tasks=tuple(self._tasks),
            started_at=self.started_at,
            finished_at=datetime.now(),
        )


def write_run_report(result: RunResult, report_path: Path) -> Path:
    """Write the run result as JSON (validated first)."""
    data = result.to_dict()
    validate_before_write(data, "run_result", report_path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(data, indent=2) + "\n")
    return report_path
