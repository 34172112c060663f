"""Version-control backend used by the apply and reset engines.

Vcs defines the capability set the engines rely on. Mutating operations are
built here as plain git argument lists and routed through _mutate(), which
either executes them or, in dry-run mode, logs and records the exact command
without touching the repository. Subclasses only supply _execute() and the
read-only queries.

GitBackend is the real implementation on top of run_git. Tests use an
in-memory subclass with the same surface.
"""

import logging
from pathlib import Path

from patchrun.git import branch, remote, status
from patchrun.git.runner import (
    DEFAULT_TIMEOUT,
    NETWORK_TIMEOUT,
    GitResult,
    format_command,
    run_git,
)

logger = logging.getLogger(__name__)

ABORT_COMMANDS = {
    "rebase": ["rebase", "--abort"],
    "merge": ["merge", "--abort"],
    "cherry-pick": ["cherry-pick", "--abort"],
}


class Vcs:
    """Capability set shared by the real backend and test fakes."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        # Commands skipped in dry-run mode, in the order they were requested
        self.planned: list[str] = []

    # -- read-only queries -------------------------------------------------

    def is_git_repo(self, path: Path) -> bool:
        raise NotImplementedError

    def current_branch(self, path: Path) -> str | None:
        raise NotImplementedError

    def branch_exists(self, path: Path, name: str) -> bool:
        raise NotImplementedError

    def branch_list(self, path: Path) -> list[str]:
        raise NotImplementedError

    def has_tracked_changes(self, path: Path) -> bool:
        raise NotImplementedError

    def count_uncommitted(self, path: Path) -> int:
        raise NotImplementedError

    def in_progress_operations(self, path: Path) -> list[str]:
        raise NotImplementedError

    def remote_reachable(self, path: Path, remote_name: str) -> bool:
        raise NotImplementedError

    # -- mutating operations -----------------------------------------------

    def checkout(self, path: Path, name: str, create: bool = False) -> GitResult:
        args = ["checkout", "-b", name] if create else ["checkout", name]
        return self._mutate(path, args)

    def fetch(self, path: Path, url: str, ref: str) -> GitResult:
        return self._mutate(path, ["fetch", url, ref], timeout=NETWORK_TIMEOUT)

    def cherry_pick(self, path: Path, rev: str = "FETCH_HEAD") -> GitResult:
        return self._mutate(path, ["cherry-pick", rev])

    def reset_hard(self, path: Path, ref: str = "HEAD") -> GitResult:
        return self._mutate(path, ["reset", "--hard", ref])

    def clean(self, path: Path) -> GitResult:
        return self._mutate(path, ["clean", "-fd"])

    def abort(self, path: Path, operation: str) -> GitResult:
        return self._mutate(path, ABORT_COMMANDS[operation])

    def branch_delete(self, path: Path, name: str) -> GitResult:
        return self._mutate(path, ["branch", "-D", name])

    def pull(self, path: Path, remote_name: str, name: str) -> GitResult:
        return self._mutate(path, ["pull", remote_name, name], timeout=NETWORK_TIMEOUT)

    def _mutate(self, path: Path, args: list[str], timeout: int = DEFAULT_TIMEOUT) -> GitResult:
        if self.dry_run:
            command = format_command(args, path)
            self.planned.append(command)
            logger.info(f"[DRY-RUN] Would execute: {command}")
            return GitResult(returncode=0, stdout="", stderr="", dry_run=True)
        logger.debug(f"Running: {format_command(args, path)}")
        return self._execute(path, args, timeout)

    def _execute(self, path: Path, args: list[str], timeout: int) -> GitResult:
        raise NotImplementedError


class GitBackend(Vcs):
    """Vcs implementation backed by the git CLI."""

    def is_git_repo(self, path: Path) -> bool:
        return status.is_git_repo(path)

    def current_branch(self, path: Path) -> str | None:
        return branch.get_current_branch(path)

    def branch_exists(self, path: Path, name: str) -> bool:
        return branch.branch_exists(path, name)

    def branch_list(self, path: Path) -> list[str]:
        return branch.list_branches(path)

    def has_tracked_changes(self, path: Path) -> bool:
        return status.has_tracked_changes(path)

    def count_uncommitted(self, path: Path) -> int:
        return status.count_uncommitted(path)

    def in_progress_operations(self, path: Path) -> list[str]:
        return status.get_in_progress_operations(path)

    def remote_reachable(self, path: Path, remote_name: str) -> bool:
        return remote.remote_reachable(path, remote_name)

    def _execute(self, path: Path, args: list[str], timeout: int) -> GitResult:
        return run_git(args, path, timeout=timeout)
