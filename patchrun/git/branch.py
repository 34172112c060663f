"""Git branch operations."""

from pathlib import Path

from patchrun.git.runner import run_git


def get_current_branch(worktree: Path) -> str | None:
    """Get the current branch name, or None if detached HEAD."""
    result = run_git(["branch", "--show-current"], worktree)
    if result.success:
        return result.stdout.strip() or None
    return None


def branch_exists(repo: Path, branch: str) -> bool:
    """Check if a branch exists."""
    result = run_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], repo)
    return result.success


def list_branches(repo: Path) -> list[str]:
    """List local branch names in refname order.

    Reads refs/heads directly so a detached HEAD never shows up as a branch.
    """
    result = run_git(["for-each-ref", "--format=%(refname:short)", "refs/heads/"], repo)
    if not result.success:
        return []
    return [b.strip() for b in result.stdout.splitlines() if b.strip()]
