"""Git remote operations."""

from pathlib import Path

from patchrun.git.runner import run_git, NETWORK_TIMEOUT


def remote_reachable(repo: Path, remote: str = "origin") -> bool:
    """Check that the remote is configured and answers ls-remote."""
    result = run_git(["ls-remote", "--exit-code", remote], repo, timeout=NETWORK_TIMEOUT)
    return result.success
