"""Git operations for patchrun.

This module provides clean interfaces for git operations.
Engines go through the Vcs backend; the functions below are the read-only
building blocks it is made of.

Return type conventions:
- Functions returning GitResult: Caller must check .success before using output.
  Examples: Vcs.fetch(), Vcs.cherry_pick(), Vcs.checkout()
- Functions returning bool: True on success/condition met, False otherwise.
  Examples: has_tracked_changes(), branch_exists(), is_git_repo()
- Functions returning parsed values (str, int, list): Return empty/zero on failure.
  Examples: list_branches() -> [], count_uncommitted() -> 0
"""

from patchrun.git.runner import GitResult, run_git
from patchrun.git.status import (
    is_git_repo,
    has_tracked_changes,
    get_status_porcelain,
    count_uncommitted,
    get_in_progress_operations,
)
from patchrun.git.branch import (
    get_current_branch,
    branch_exists,
    list_branches,
)
from patchrun.git.remote import (
    remote_reachable,
)
from patchrun.git.backend import Vcs, GitBackend

__all__ = [
    # runner
    "GitResult",
    "run_git",
    # status
    "is_git_repo",
    "has_tracked_changes",
    "get_status_porcelain",
    "count_uncommitted",
    "get_in_progress_operations",
    # branch
    "get_current_branch",
    "branch_exists",
    "list_branches",
    # remote
    "remote_reachable",
    # backend
    "Vcs",
    "GitBackend",
]
