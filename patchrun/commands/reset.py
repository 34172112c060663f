"""
patchrun reset - Reset every checkout to a clean trunk.

Discards all uncommitted changes, deletes all non-trunk branches and resets
trunk to the remote state. This cannot be undone, hence the confirmation
prompt unless --force or --dry-run is given.
"""

import logging
from pathlib import Path

from patchrun.commands.common import check_dependencies, confirm, log_summary, save_report
from patchrun.git.backend import GitBackend, Vcs
from patchrun.lib.config import RunConfig
from patchrun.lib.locking import run_lock
from patchrun.workflow.reset import ResetEngine, describe_workspaces

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ["git"]


def cmd_reset(args, config: RunConfig, log_file: Path | None, vcs: Vcs | None = None) -> int:
    """Reset the plan's checkouts. Returns the process exit code."""
    tasks = config.tasks
    trunk = config.trunk

    logger.info("Repository Cleanup")
    if log_file is not None:
        logger.info(f"Log file: {log_file}")
    logger.info(f"Processing repositories: {' '.join(t.local_path for t in tasks)}")

    check_dependencies(REQUIRED_TOOLS)

    if config.dry_run:
        logger.info("DRY RUN MODE - No changes will be made")
    elif not config.force:
        print()
        print(f"This will reset ALL repositories to clean {trunk} state:")
        print("- Discard all uncommitted changes")
        print(f"- Delete all non-{trunk} branches")
        print(f"- Reset {trunk} to remote state")
        print()
        if not confirm("Are you sure you want to continue?"):
            logger.info("Operation cancelled by user")
            return 0

    logger.info("Starting cleanup process...")
    vcs = vcs or GitBackend(dry_run=config.dry_run)
    engine = ResetEngine(config, vcs)

    if config.dry_run:
        result = engine.run(tasks)
    else:
        with run_lock(config.config_path.resolve().parent):
            result = engine.run(tasks)

    log_summary(result, log_file)
    save_report(result, log_file)

    if not config.dry_run:
        print()
        print("Summary:")
        for line in describe_workspaces(tasks, vcs):
            print(f"  {line}")

    return result.exit_code
