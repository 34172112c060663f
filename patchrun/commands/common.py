"""Helpers shared by the apply and reset commands."""

import logging
import shutil
import sys
from pathlib import Path

from patchrun.lib.config import RunConfig
from patchrun.lib.errors import MissingDependencyError
from patchrun.lib.log import success
from patchrun.lib.validate import ValidationError
from patchrun.workflow.results import RunResult, TaskOutcome, write_run_report

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 41


def check_dependencies(tools: list[str]) -> None:
    """
    Make sure external tools are on PATH.

    Raises:
        MissingDependencyError: listing every missing tool
    """
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        logger.error(f"Missing dependencies: {' '.join(missing)}")
        logger.info(f"Installation suggestion: sudo apt install {' '.join(missing)}")
        raise MissingDependencyError(missing)


def confirm(question: str, stdin=None) -> bool:
    """Ask a y/N question. Anything but y/Y, or a non-interactive stdin, is no."""
    stdin = stdin or sys.stdin
    if not stdin.isatty():
        logger.warning("Standard input is not a terminal; use --force to run without confirmation")
        return False
    print(f"{question} (y/N): ", end="", flush=True)
    reply = stdin.readline()
    return reply.strip().lower() == "y"


def describe_tasks(config: RunConfig) -> list[str]:
    """Plan lines shown before a run and by show-config."""
    lines = []
    for task in config.tasks:
        changes = " ".join(task.change_ids) or "(no changes)"
        lines.append(f"  {task.local_path} -> {task.backend_repo_name}: {changes}")
    return lines or ["  No patch configurations found!"]


def log_summary(result: RunResult, log_file: Path | None) -> None:
    """Final summary; failed tasks are always listed by name."""
    logger.info(SEPARATOR)
    if result.dry_run:
        logger.info("Preview completed!")
    elif result.command == "apply":
        logger.info("Patch application completed!")
    else:
        logger.info("Cleanup completed!")

    for task_result in result.tasks:
        if task_result.outcome in (TaskOutcome.PARTIAL, TaskOutcome.FAILED):
            failed = " ".join(task_result.failed)
            detail = task_result.error or f"failed changes: {failed}"
            logger.error(f"{task_result.task.local_path}: {task_result.outcome.value} ({detail})")

    counts = (
        f"Success: {result.total_success}, Failed: {result.total_failure}, "
        f"Skipped: {result.total_skipped}"
    )
    if result.total_failure:
        logger.warning(counts)
    else:
        success(logger, counts)
    if log_file is not None:
        logger.info(f"Detailed log: {log_file}")
    logger.info(SEPARATOR)


def save_report(result: RunResult, log_file: Path | None) -> Path | None:
    """Write the run report next to the log file (same stem, .json)."""
    if log_file is None:
        return None
    report_path = log_file.with_suffix(".json")
    try:
        write_run_report(result, report_path)
    except (OSError, ValidationError) as e:
        logger.error(f"Could not write run report {report_path}: {e}")
        return None
    logger.debug(f"Run report: {report_path}")
    return report_path
