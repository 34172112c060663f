"""Git status operations."""

from pathlib import Path

from patchrun.git.runner import run_git

# Marker paths inside the git dir and the command that aborts each operation
IN_PROGRESS_MARKERS = [
    ("rebase-merge", "rebase"),
    ("rebase-apply", "rebase"),
    ("MERGE_HEAD", "merge"),
    ("CHERRY_PICK_HEAD", "cherry-pick"),
]


def is_git_repo(path: Path) -> bool:
    """Check that path is the top level of a git working tree."""
    result = run_git(["rev-parse", "--show-toplevel"], path)
    if not result.success:
        return False
    toplevel = result.stdout.strip()
    return bool(toplevel) and Path(toplevel).resolve() == path.resolve()


def has_tracked_changes(worktree: Path) -> bool:
    """Check for staged or unstaged changes to tracked files.

    Untracked files are ignored; they never block a cherry-pick.
    """
    unstaged = run_git(["diff", "--quiet"], worktree)
    staged = run_git(["diff", "--cached", "--quiet"], worktree)
    return not (unstaged.success and staged.success)


def get_status_porcelain(worktree: Path) -> str:
    """Get git status in porcelain format."""
    result = run_git(["status", "--porcelain"], worktree)
    return result.stdout


def count_uncommitted(worktree: Path) -> int:
    """Number of porcelain status entries (tracked changes plus untracked files)."""
    return len([line for line in get_status_porcelain(worktree).splitlines() if line.strip()])


def get_in_progress_operations(worktree: Path) -> list[str]:
    """
    Detect interrupted rebase, merge or cherry-pick.

    Returns:
        Operation names ("rebase", "merge", "cherry-pick") in abort order,
        without duplicates.
    """
    operations = []
    for marker, operation in IN_PROGRESS_MARKERS:
        result = run_git(["rev-parse", "--git-path", marker], worktree)
        if not result.success:
            continue
        marker_path = Path(result.stdout.strip())
        if not marker_path.is_absolute():
            marker_path = worktree / marker_path
        if marker_path.exists() and operation not in operations:
            operations.append(operation)
    return operations
