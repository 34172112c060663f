"""
Error taxonomy for patchrun.

Scope of each error decides how far it propagates:
- process-fatal: ConfigError, MissingDependencyError (raised before any mutation)
- task-fatal:    WorkspaceAccessError (skip), DirtyWorkingTree, BranchError
- change-fatal:  ResolutionError, FetchError, CherryPickConflict

Everything below process-fatal is caught by the engines and recorded in the
run result; the run always reaches its summary.
"""

from enum import Enum
from pathlib import Path


class PatchrunError(Exception):
    """Base class for all patchrun errors."""

    # Short machine-readable tag stored in run reports
    kind = "error"


class ConfigError(PatchrunError):
    """Plan file missing, malformed or inconsistent."""
    kind = "config"


class MissingDependencyError(PatchrunError):
    """A required external tool (git, ssh) is not on PATH."""
    kind = "missing_dependency"

    def __init__(self, tools: list[str]):
        self.tools = tools
        super().__init__(f"Missing dependencies: {' '.join(tools)}")


class WorkspaceAccessError(PatchrunError):
    """Workspace cannot be used at all. The task is skipped, not failed."""
    kind = "workspace_access"

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(message)


class WorkspaceNotFound(WorkspaceAccessError):
    kind = "not_found"

    def __init__(self, path: Path):
        super().__init__(path, f"Directory does not exist: {path}")


class NotAGitRepo(WorkspaceAccessError):
    kind = "not_a_repo"

    def __init__(self, path: Path):
        super().__init__(path, f"{path} is not a git repository")


class DirtyWorkingTree(PatchrunError):
    """Uncommitted tracked changes; patches are never applied on top of them."""
    kind = "dirty"

    def __init__(self, path: Path):
        self.path = path
        super().__init__(
            f"Working directory has uncommitted changes, please commit or stash first: {path}"
        )


class BranchError(PatchrunError):
    kind = "branch"

    def __init__(self, branch: str, detail: str = ""):
        self.branch = branch
        message = f"Cannot create or switch to branch: {branch}"
        super().__init__(message + (f" ({detail})" if detail else ""))


class ResolutionFailure(Enum):
    """Why a change id could not be resolved."""
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    UNPARSEABLE = "unparseable"
    TIMEOUT = "timeout"
    QUERY_FAILED = "query_failed"


class ResolutionError(PatchrunError):
    """Change id could not be turned into a fetch reference."""

    def __init__(self, change_id: str, failure: ResolutionFailure, detail: str = ""):
        self.change_id = change_id
        self.failure = failure
        message = f"Cannot resolve change {change_id or '<empty>'}: {failure.value}"
        super().__init__(message + (f" ({detail})" if detail else ""))

    @property
    def kind(self) -> str:
        return f"resolution_{self.failure.value}"


class ApplyError(PatchrunError):
    """A resolved change could not be applied to the workspace."""

    def __init__(self, change_id: str, message: str, stderr: str = ""):
        self.change_id = change_id
        self.stderr = stderr
        super().__init__(message)


class FetchError(ApplyError):
    kind = "fetch"


class CherryPickConflict(ApplyError):
    kind = "cherry_pick"
