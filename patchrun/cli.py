#!/usr/bin/env python3
"""patchrun CLI entrypoint."""

import sys
import argparse
import logging

from patchrun.lib.config import PLAN_FILENAME, build_run_config
from patchrun.lib.errors import ConfigError, MissingDependencyError
from patchrun.lib.locking import LockTimeout
from patchrun.lib.log import log_file_path, run_logging
from patchrun.commands import apply as cmd_apply_module
from patchrun.commands import reset as cmd_reset_module
from patchrun.commands import show_config as cmd_show_config_module

logger = logging.getLogger("patchrun.cli")

EXIT_CONFIG_ERROR = 2
EXIT_MISSING_DEPENDENCY = 3
EXIT_LOCKED = 4


def load_config_or_exit(args):
    """Build RunConfig; returns (config, None) or (None, exit_code)."""
    try:
        return build_run_config(args), None
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return None, EXIT_CONFIG_ERROR


def run_logged(args, command: str, runner) -> int:
    """Run a mutating command with per-run logging and process-fatal error mapping."""
    config, exit_code = load_config_or_exit(args)
    if config is None:
        return exit_code

    log_file = log_file_path(config.log_dir, command)
    with run_logging(log_file, verbose=config.verbose):
        try:
            return runner(args, config, log_file)
        except ConfigError as e:
            logger.error(str(e))
            return EXIT_CONFIG_ERROR
        except MissingDependencyError:
            return EXIT_MISSING_DEPENDENCY
        except LockTimeout as e:
            logger.error(f"Another patchrun run holds the lock: {e}")
            return EXIT_LOCKED


def cmd_apply(args):
    return run_logged(args, "apply", cmd_apply_module.cmd_apply)


def cmd_reset(args):
    return run_logged(args, "reset", cmd_reset_module.cmd_reset)


def cmd_show_config(args):
    config, exit_code = load_config_or_exit(args)
    if config is None:
        return exit_code
    try:
        return cmd_show_config_module.cmd_show_config(args, config)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def port_number(value: str) -> int:
    port = int(value)
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='patchrun',
        description='Apply Gerrit changes across many repositories, and reset them afterwards',
    )
    parser.add_argument('--config', '-c', default=PLAN_FILENAME,
                        help=f'Plan file (default: ./{PLAN_FILENAME})')
    parser.add_argument('--log-dir', help="Directory for run logs (default: the plan file's directory)")
    parser.add_argument('--verbose', '-v', action='store_true', help='Show git commands on the console')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # patchrun apply
    p_apply = subparsers.add_parser('apply', help='Fetch and cherry-pick changes into each repository')
    p_apply.add_argument('--user', '-u', help='Gerrit username')
    p_apply.add_argument('--host', '-H', help='Gerrit host')
    p_apply.add_argument('--port', '-p', type=port_number, help='Gerrit SSH port')
    branch_group = p_apply.add_mutually_exclusive_group()
    branch_group.add_argument('--branch', '-b', help='Working branch to create (implies branch creation)')
    branch_group.add_argument('--no-branch', action='store_true',
                              help="Don't create a branch, apply patches on the current branch")
    p_apply.add_argument('--dry-run', '-d', action='store_true', help="Preview, don't execute")
    p_apply.add_argument('--force', '-f', action='store_true', help='Skip confirmation')
    p_apply.add_argument('--repo', '-r', help='Only process this repository (plan path or project)')
    p_apply.set_defaults(func=cmd_apply)

    # patchrun reset
    p_reset = subparsers.add_parser('reset', help='Reset repositories to a clean trunk branch')
    p_reset.add_argument('--trunk', help='Trunk branch to keep (default: master)')
    p_reset.add_argument('--remote', help='Remote to sync trunk from (default: origin)')
    p_reset.add_argument('--dry-run', '-d', action='store_true', help="Preview, don't execute")
    p_reset.add_argument('--force', '-f', action='store_true', help='Skip confirmation')
    p_reset.add_argument('--repo', '-r', help='Only process this repository (plan path or project)')
    p_reset.set_defaults(func=cmd_reset)

    # patchrun show-config
    p_show = subparsers.add_parser('show-config', help='Show effective configuration and exit')
    p_show.add_argument('--repo', '-r', help='Only show this repository')
    p_show.set_defaults(func=cmd_show_config)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
