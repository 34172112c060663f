"""Patch application engine.

Walks the plan in order and, for each repository task:

    open workspace -> assert clean -> ensure branch -> resolve + apply each change

Failures are isolated: a bad change does not stop the next change in the same
task, and a failed or skipped task does not stop the next task. Every task
ends up in the RunResult exactly once.
"""

import logging

from patchrun.git.backend import Vcs
from patchrun.lib.config import RepoTask, RunConfig
from patchrun.lib.errors import (
    ApplyError,
    BranchError,
    DirtyWorkingTree,
    ResolutionError,
    WorkspaceAccessError,
)
from patchrun.lib.log import success
from patchrun.workflow.results import (
    ChangeResult,
    RunResult,
    RunResultBuilder,
    TaskResult,
)
from patchrun.workflow.workspace import Workspace, open_workspace

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 41


class ApplyEngine:
    """Applies the changes of a PatchPlan to its checkouts.

    The resolver needs resolve(change_id) -> ResolvedChange and
    fetch_url(project) -> str (see GerritResolver).
    """

    def __init__(self, config: RunConfig, vcs: Vcs, resolver):
        self.config = config
        self.vcs = vcs
        self.resolver = resolver

    def run(self, tasks: tuple[RepoTask, ...] | None = None) -> RunResult:
        tasks = self.config.tasks if tasks is None else tasks
        builder = RunResultBuilder("apply", self.config.dry_run)
        for task in tasks:
            builder.add(self.run_task(task))
        return builder.build()

    def run_task(self, task: RepoTask) -> TaskResult:
        result = TaskResult(task)
        logger.info(SEPARATOR)
        logger.info(f"Processing repository: {task.local_path} ({task.backend_repo_name})")
        logger.info(f"Patch list: {' '.join(task.change_ids) or '(none)'}")

        try:
            with open_workspace(task.path, self.vcs) as workspace:
                workspace.assert_clean()
                workspace.ensure_branch(self.config.branch, self.config.create_branch)
                project_url = self.resolver.fetch_url(task.backend_repo_name)
                for change_id in task.change_ids:
                    result.record(self.apply_change(workspace, change_id, project_url))
        except WorkspaceAccessError as e:
            logger.warning(f"Skipping {task.local_path}: {e}")
            result.skip(e)
        except (DirtyWorkingTree, BranchError) as e:
            logger.error(str(e))
            result.abort(e)
        except Exception as e:
            logger.exception(f"Unexpected error while processing {task.local_path}: {e}")
            result.abort(e)

        if not result.skipped:
            logger.info(
                f"Repository {task.local_path} processing completed: "
                f"success {len(result.succeeded)}, failed {len(result.failed)}"
            )
        return result

    def apply_change(self, workspace: Workspace, change_id: str, project_url: str) -> ChangeResult:
        """Resolve and apply one change; never raises for per-change errors."""
        logger.info(f"Processing patch: {change_id}")
        resolved = None
        try:
            resolved = self.resolver.resolve(change_id)
            workspace.apply_change(resolved, project_url)
        except ResolutionError as e:
            logger.error(str(e))
            return ChangeResult.failed(change_id, e)
        except ApplyError as e:
            logger.error(f"Failed to apply patch {change_id}: {e}")
            if e.stderr:
                logger.error(e.stderr)
            return ChangeResult.failed(change_id, e, resolved)

        if self.config.dry_run:
            logger.info(f"[DRY-RUN] Patch {change_id} would be applied from {resolved.fetch_ref}")
        else:
            success(logger, f"Successfully applied patch: {change_id} ({resolved.fetch_ref})")
        return ChangeResult.applied(resolved)
