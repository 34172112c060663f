"""Repository workspace: one local checkout seen through a Vcs backend.

A Workspace carries its own path and issues every git call against it
(git -C <path>), so nothing depends on the process working directory.
open_workspace() still scopes each task and puts the working directory back
on every exit path in case a hook or tool changed it.
"""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from patchrun.git.backend import Vcs
from patchrun.lib.errors import (
    BranchError,
    CherryPickConflict,
    DirtyWorkingTree,
    FetchError,
    NotAGitRepo,
    WorkspaceNotFound,
)
from patchrun.lib.gerrit import ResolvedChange
from patchrun.lib.log import success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceState:
    """Snapshot of a checkout. Re-observe after every mutation."""
    path: Path
    current_branch: str | None
    is_clean: bool
    is_git_repo: bool
    branches: tuple[str, ...] = field(default=())
    uncommitted_count: int = 0


class Workspace:
    """One git working copy."""

    def __init__(self, path: Path, vcs: Vcs):
        self.path = path
        self.vcs = vcs

    @classmethod
    def open(cls, path: Path, vcs: Vcs) -> "Workspace":
        """
        Open a checkout.

        Raises:
            WorkspaceNotFound: path does not exist
            NotAGitRepo: path is not the top of a git working tree
        """
        if not path.is_dir():
            raise WorkspaceNotFound(path)
        if not vcs.is_git_repo(path):
            raise NotAGitRepo(path)
        return cls(path, vcs)

    def state(self) -> WorkspaceState:
        return WorkspaceState(
            path=self.path,
            current_branch=self.vcs.current_branch(self.path),
            is_clean=not self.vcs.has_tracked_changes(self.path),
            is_git_repo=True,
            branches=tuple(self.vcs.branch_list(self.path)),
            uncommitted_count=self.vcs.count_uncommitted(self.path),
        )

    def assert_clean(self) -> None:
        """Raise DirtyWorkingTree if tracked files have staged or unstaged changes."""
        if self.vcs.has_tracked_changes(self.path):
            raise DirtyWorkingTree(self.path)

    def ensure_branch(self, name: str, create: bool) -> str | None:
        """
        Put the workspace on the branch patches will land on.

        With create=True, creates and switches to `name`; an existing branch
        is switched to with a warning and never reset. With create=False the
        current branch is used as is.

        Returns:
            The branch patches will be applied on (None if detached).

        Raises:
            BranchError: the branch could be neither created nor checked out
        """
        if not create:
            current = self.vcs.current_branch(self.path)
            logger.info(f"Applying patches on current branch: {current or '(detached HEAD)'}")
            return current

        if self.vcs.branch_exists(self.path, name):
            result = self.vcs.checkout(self.path, name)
            if not result.success:
                raise BranchError(name, result.stderr.strip())
            logger.warning(f"Switched to existing branch: {name}")
            return name

        result = self.vcs.checkout(self.path, name, create=True)
        if not result.success:
            raise BranchError(name, result.stderr.strip())
        if result.dry_run:
            logger.info(f"[DRY-RUN] Will create branch: {name}")
        else:
            success(logger, f"Created new branch: {name}")
        return name

    def apply_change(self, change: ResolvedChange, project_url: str) -> None:
        """
        Fetch a resolved change and cherry-pick it onto the current branch.

        The cherry-pick only runs if the fetch succeeded. A conflicted
        cherry-pick is left in place for `patchrun reset` to clean up.

        Raises:
            FetchError: fetching the ref from project_url failed
            CherryPickConflict: the cherry-pick did not apply cleanly
        """
        fetched = self.vcs.fetch(self.path, project_url, change.fetch_ref)
        if not fetched.success:
            raise FetchError(
                change.change_id,
                f"Failed to fetch {change.fetch_ref} from {project_url}",
                fetched.stderr.strip(),
            )

        picked = self.vcs.cherry_pick(self.path, "FETCH_HEAD")
        if not picked.success:
            raise CherryPickConflict(
                change.change_id,
                f"Cherry-pick of {change.change_id} ({change.fetch_ref}) failed",
                (picked.stderr or picked.stdout).strip(),
            )


@contextmanager
def open_workspace(path: Path, vcs: Vcs):
    """Open a workspace for the duration of one task.

    The process working directory at entry is restored on exit, whether the
    task succeeded, failed or was skipped.
    """
    original_cwd = os.getcwd()
    try:
        yield Workspace.open(path, vcs)
    finally:
        if os.getcwd() != original_cwd:
            os.chdir(original_cwd)
