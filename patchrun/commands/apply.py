"""
patchrun apply - Fetch and cherry-pick Gerrit changes into every checkout.

Preflight (configuration, tools, connection check, confirmation) happens
before any repository is touched. The run itself never stops early: each
task and each change is recorded in the run result.
"""

import logging
from pathlib import Path

from patchrun.commands.common import (
    SEPARATOR,
    check_dependencies,
    confirm,
    describe_tasks,
    log_summary,
    save_report,
)
from patchrun.commands.show_config import config_lines
from patchrun.git.backend import GitBackend, Vcs
from patchrun.lib.config import RunConfig
from patchrun.lib.errors import ConfigError
from patchrun.lib.gerrit import GerritResolver
from patchrun.lib.locking import run_lock
from patchrun.lib.log import success
from patchrun.workflow.engine import ApplyEngine

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ["git", "ssh"]


def check_gerrit_connection(resolver, config: RunConfig) -> bool:
    """Log whether Gerrit answers; a failed check does not stop the run."""
    logger.info(f"Testing Gerrit connection: {config.gerrit.display}")
    if resolver.check_connection():
        success(logger, "Gerrit connection test successful")
        return True
    logger.error("Cannot connect to Gerrit server")
    logger.info("Please check:")
    logger.info(f"  1. Username is correct: {config.gerrit.user}")
    logger.info("  2. SSH key is configured")
    logger.info("  3. Network connection is working")
    return False


def cmd_apply(args, config: RunConfig, log_file: Path | None,
              vcs: Vcs | None = None, resolver=None) -> int:
    """Apply every change of the plan. Returns the process exit code."""
    if not config.gerrit.host:
        raise ConfigError("Gerrit host not configured: set gerrit.host, GERRIT_HOST or --host")
    tasks = config.tasks

    logger.info(SEPARATOR)
    logger.info("Patch Application")
    logger.info(SEPARATOR)
    logger.info("Current configuration:")
    for line in config_lines(config, log_file):
        logger.info(line)
    logger.info("Repositories and patches to process:")
    for line in describe_tasks(config):
        logger.info(line)

    if config.dry_run:
        logger.warning("Preview mode - will not execute actual operations")

    check_dependencies(REQUIRED_TOOLS)

    resolver = resolver or GerritResolver(config.gerrit)
    check_gerrit_connection(resolver, config)

    if not config.dry_run and not config.force:
        logger.warning("About to start applying patches")
        if not confirm("Confirm to continue?"):
            logger.info("Operation cancelled")
            return 0

    vcs = vcs or GitBackend(dry_run=config.dry_run)
    engine = ApplyEngine(config, vcs, resolver)

    if config.dry_run:
        result = engine.run(tasks)
    else:
        with run_lock(config.config_path.resolve().parent):
            result = engine.run(tasks)

    log_summary(result, log_file)
    save_report(result, log_file)
    return result.exit_code
