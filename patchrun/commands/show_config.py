"""
patchrun show-config - Print the effective configuration and plan.
"""

from pathlib import Path

from patchrun.commands.common import describe_tasks
from patchrun.lib.config import RunConfig


def config_lines(config: RunConfig, log_file: Path | None = None) -> list[str]:
    """Effective settings, one per line."""
    lines = [
        f"  Username: {config.gerrit.user}",
        f"  Gerrit: {config.gerrit.host or '(not set)'}:{config.gerrit.port}",
    ]
    if config.create_branch:
        lines.append(f"  Branch name: {config.branch}")
    else:
        lines.append("  Branch strategy: Apply patches on current branch")
    lines.append(f"  Trunk: {config.remote}/{config.trunk}")
    lines.append(f"  Config file: {config.config_path}")
    if log_file is not None:
        lines.append(f"  Log file: {log_file}")
    return lines


def cmd_show_config(args, config: RunConfig) -> int:
    """Print configuration and the repositories to process."""
    print("Current configuration:")
    for line in config_lines(config):
        print(line)
    print()
    print("Repositories and patches to process:")
    for line in describe_tasks(config):
        print(line)
    return 0
