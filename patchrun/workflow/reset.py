"""Reset engine: return checkouts to a clean trunk.

reset_task() is destructive and irreversible. For every repository it:

1. aborts an in-progress rebase, merge or cherry-pick (best effort)
2. discards all uncommitted changes and untracked files (reset --hard, clean -fd)
3. checks out the trunk branch, which must already exist
4. deletes every other local branch
5. resets trunk to <remote>/<trunk>, or to HEAD if that ref is unavailable
6. pulls <remote> <trunk> when the remote answers

Only a failed trunk checkout fails the task; every other step degrades to a
warning. Missing directories and non-repositories are skipped.
"""

import logging

from patchrun.git.backend import Vcs
from patchrun.lib.config import RepoTask, RunConfig
from patchrun.lib.errors import BranchError, WorkspaceAccessError, WorkspaceNotFound
from patchrun.lib.log import success
from patchrun.workflow.fsm import ResetFSM
from patchrun.workflow.results import RunResult, RunResultBuilder, TaskResult
from patchrun.workflow.workspace import Workspace, WorkspaceState, open_workspace

logger = logging.getLogger(__name__)


class ResetEngine:
    """Resets every checkout of a plan to its trunk branch."""

    def __init__(self, config: RunConfig, vcs: Vcs):
        self.config = config
        self.vcs = vcs
        # Final state machine of each task, in run order
        self.machines: list[ResetFSM] = []

    def run(self, tasks: tuple[RepoTask, ...] | None = None) -> RunResult:
        tasks = self.config.tasks if tasks is None else tasks
        builder = RunResultBuilder("reset", self.config.dry_run)
        for task in tasks:
            builder.add(self.run_task(task))
        return builder.build()

    def run_task(self, task: RepoTask) -> TaskResult:
        result = TaskResult(task)
        fsm = ResetFSM(task.local_path)
        self.machines.append(fsm)
        logger.info(f"Processing repository: {task.local_path}")

        try:
            with open_workspace(task.path, self.vcs) as workspace:
                fsm.inspect()
                self.reset_workspace(workspace, fsm)
        except WorkspaceAccessError as e:
            if isinstance(e, WorkspaceNotFound):
                fsm.mark_missing()
            else:
                fsm.mark_not_repo()
            logger.warning(str(e))
            error = e
        except BranchError as e:
            fsm.fail()
            logger.error(f"{e} in {task.local_path}")
            error = e
        except Exception as e:
            if fsm.can("fail"):
                fsm.fail()
            logger.exception(f"Unexpected error while cleaning {task.local_path}: {e}")
            error = e
        else:
            return result

        # The machine's final state decides between skip and failure
        if fsm.skipped:
            result.skip(error)
        else:
            logger.debug(f"Reset of {task.local_path} stopped after: {' -> '.join(fsm.history)}")
            result.abort(error)
        return result

    def reset_workspace(self, workspace: Workspace, fsm: ResetFSM) -> None:
        """Run the reset sequence on an opened workspace (see module docstring)."""
        path = workspace.path
        trunk = self.config.trunk
        remote = self.config.remote
        state = workspace.state()

        if self.config.dry_run:
            self.report(state)

        fsm.abort_ops()
        operations = self.vcs.in_progress_operations(path)
        if operations:
            logger.info(f"Aborting ongoing git operations: {', '.join(operations)}")
        for operation in operations:
            aborted = self.vcs.abort(path, operation)
            if not aborted.success:
                logger.warning(f"Failed to abort {operation}: {aborted.stderr.strip()}")

        fsm.discard()
        logger.info("Discarding uncommitted changes...")
        for step in (self.vcs.reset_hard(path, "HEAD"), self.vcs.clean(path)):
            if not step.success:
                logger.warning(f"Discard step failed: {step.stderr.strip()}")

        if state.current_branch != trunk:
            logger.info(f"Switching to {trunk} branch...")
            switched = self.vcs.checkout(path, trunk)
            if not switched.success:
                raise BranchError(trunk, switched.stderr.strip())
        fsm.switch_trunk()

        doomed = [b for b in state.branches if b != trunk]
        if doomed:
            logger.info(f"Deleting non-{trunk} branches...")
        for name in doomed:
            logger.info(f"Deleting branch: {name}")
            deleted = self.vcs.branch_delete(path, name)
            if not deleted.success:
                logger.warning(f"Failed to delete branch: {name}")
        fsm.prune()

        logger.info(f"Resetting {trunk} to remote state...")
        tracked = self.vcs.reset_hard(path, f"{remote}/{trunk}")
        if not tracked.success:
            logger.warning(f"Cannot reset to {remote}/{trunk}, keeping local HEAD")
            self.vcs.reset_hard(path, "HEAD")

        logger.info("Pulling latest changes...")
        if self.vcs.remote_reachable(path, remote):
            pulled = self.vcs.pull(path, remote, trunk)
            if not pulled.success:
                logger.warning(f"Failed to pull from {remote}")
        else:
            logger.warning(f"Remote '{remote}' not configured or not accessible")
        fsm.sync()

        fsm.finish()
        if self.config.dry_run:
            logger.info(f"[DRY-RUN] Would clean repository: {path}")
        else:
            success(logger, f"Repository cleaned: {path}")

    def report(self, state: WorkspaceState) -> None:
        """Log what a reset would throw away."""
        doomed = [b for b in state.branches if b != self.config.trunk]
        logger.info(f"  Current branch: {state.current_branch or 'unknown'}")
        logger.info(f"  Non-{self.config.trunk} branches: {len(doomed)}")
        logger.info(f"  Uncommitted changes: {state.uncommitted_count}")
        if doomed:
            logger.info("  Branches to delete:")
            for name in doomed:
                logger.info(f"    {name}")


def describe_workspaces(tasks: tuple[RepoTask, ...], vcs: Vcs) -> list[str]:
    """One summary line per existing checkout: branch, branch count, uncommitted entries."""
    lines = []
    for task in tasks:
        try:
            state = Workspace.open(task.path, vcs).state()
        except WorkspaceAccessError:
            continue
        lines.append(
            f"{task.local_path}: branch={state.current_branch or 'unknown'}, "
            f"branches={len(state.branches)}, uncommitted={state.uncommitted_count}"
        )
    return lines
