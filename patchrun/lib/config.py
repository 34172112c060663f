"""
Configuration loaders for patchrun.

The plan file (patchrun.yaml) lists the repository checkouts to process and
the Gerrit changes to apply to each. Settings are merged with the following
precedence: command-line flag, plan file, environment, built-in default.
The result is a frozen RunConfig that is built once and handed to every
component.
"""

import getpass
import logging
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import yaml

from . import validate
from .errors import ConfigError
from .gerrit import DEFAULT_PORT, GerritSettings, normalize_change_id

logger = logging.getLogger(__name__)

PLAN_FILENAME = "patchrun.yaml"
DEFAULT_TRUNK = "master"
DEFAULT_REMOTE = "origin"


def default_branch_name(today: date | None = None) -> str:
    """Working branch used when none is configured, e.g. 20261019_patches."""
    return f"{(today or date.today()):%Y%m%d}_patches"


@dataclass(frozen=True)
class RepoTask:
    """One checkout and the changes to apply to it, in apply order."""
    local_path: str  # As written in the plan; also the --repo filter key
    backend_repo_name: str  # Gerrit project name
    change_ids: tuple[str, ...]
    base_dir: Path = field(default=Path("."), compare=False)

    @property
    def path(self) -> Path:
        """Absolute checkout location (relative plan paths resolve against the plan file)."""
        p = Path(self.local_path).expanduser()
        if not p.is_absolute():
            p = self.base_dir / p
        return p

    def matches(self, name: str) -> bool:
        return name in (self.local_path, self.backend_repo_name)


@dataclass(frozen=True)
class PatchPlan:
    """Ordered, immutable list of repository tasks."""
    tasks: tuple[RepoTask, ...]

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def select(self, repo_filter: str | None) -> "PatchPlan":
        """Restrict the plan to the task named by --repo (path or project)."""
        if not repo_filter:
            return self
        selected = tuple(t for t in self.tasks if t.matches(repo_filter))
        if not selected:
            raise ConfigError(f"No repository in plan matches '{repo_filter}'")
        return PatchPlan(selected)


@dataclass(frozen=True)
class PlanFile:
    """Parsed plan file before command-line overrides."""
    path: Path
    plan: PatchPlan
    settings: dict


@dataclass(frozen=True)
class RunConfig:
    """Effective configuration for one run."""
    gerrit: GerritSettings
    branch: str
    create_branch: bool
    trunk: str
    remote: str
    plan: PatchPlan
    config_path: Path
    log_dir: Path
    dry_run: bool = False
    force: bool = False
    repo_filter: str | None = None
    verbose: bool = False

    @property
    def tasks(self) -> tuple[RepoTask, ...]:
        return self.plan.select(self.repo_filter).tasks


def parse_change_ids(raw, repo_path: str) -> tuple[str, ...]:
    """Split a plan's change list into normalized ids.

    Accepts a space separated string, a list, or a single number (YAML reads
    `changes: 850035` as an int). Tokens without any digit are dropped with a
    warning.
    """
    if raw is None:
        return ()
    tokens = [str(t) for t in raw] if isinstance(raw, list) else str(raw).split()
    ids = []
    for token in tokens:
        change_id = normalize_change_id(token)
        if not change_id:
            logger.warning(f"Ignoring change id '{token}' for {repo_path}: no digits")
            continue
        ids.append(change_id)
    return tuple(ids)


def _order_tasks(tasks: list[RepoTask], order: list[str] | None) -> list[RepoTask]:
    if order is None:
        return tasks
    by_path = {t.local_path: t for t in tasks}
    ordered = []
    for name in order:
        if name not in by_path:
            raise ConfigError(f"'order' names unknown repository: {name}")
        if by_path[name] in ordered:
            raise ConfigError(f"'order' lists repository twice: {name}")
        ordered.append(by_path[name])
    return ordered


def load_plan_file(config_path: Path) -> PlanFile:
    """
    Load and validate a plan file.

    Raises:
        ConfigError: file missing, not YAML, schema violation, duplicate paths
    """
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from None

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    try:
        validate.validate(data, "plan")
    except validate.ValidationError as e:
        raise ConfigError(f"{config_path}: {e}") from None

    base_dir = config_path.resolve().parent
    tasks = []
    seen = set()
    for entry in data["repos"]:
        local_path = entry["path"]
        if local_path in seen:
            raise ConfigError(f"{config_path}: duplicate repository path '{local_path}'")
        seen.add(local_path)
        tasks.append(RepoTask(
            local_path=local_path,
            backend_repo_name=entry["project"],
            change_ids=parse_change_ids(entry.get("changes"), local_path),
            base_dir=base_dir,
        ))

    tasks = _order_tasks(tasks, data.get("order"))
    settings = {k: v for k, v in data.items() if k not in ("repos", "order")}
    return PlanFile(path=config_path, plan=PatchPlan(tuple(tasks)), settings=settings)


def _first(*values):
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def _env_port(env) -> int | None:
    raw = env.get("GERRIT_PORT")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"GERRIT_PORT must be a number, got '{raw}'") from None


def build_run_config(args, env=None) -> RunConfig:
    """
    Build the effective RunConfig from parsed arguments, plan file and environment.

    Args:
        args: argparse namespace; command-specific flags may be absent
        env: environment mapping (defaults to os.environ)

    Raises:
        ConfigError: plan file problems or invalid overrides
    """
    env = os.environ if env is None else env
    config_path = Path(getattr(args, "config", None) or PLAN_FILENAME)
    plan_file = load_plan_file(config_path)
    settings = plan_file.settings
    gerrit_file = settings.get("gerrit", {})

    gerrit = GerritSettings(
        user=_first(getattr(args, "user", None), gerrit_file.get("user"),
                    env.get("GERRIT_USER") or None) or getpass.getuser(),
        host=_first(getattr(args, "host", None), gerrit_file.get("host"),
                    env.get("GERRIT_HOST") or None) or "",
        port=_first(getattr(args, "port", None), gerrit_file.get("port"),
                    _env_port(env), DEFAULT_PORT),
    )

    cli_branch = getattr(args, "branch", None)
    if getattr(args, "no_branch", False):
        create_branch = False
    elif cli_branch:
        create_branch = True
    else:
        create_branch = settings.get("create_branch", True)

    log_dir = getattr(args, "log_dir", None)

    return RunConfig(
        gerrit=gerrit,
        branch=_first(cli_branch, settings.get("branch"),
                      env.get("PATCH_BRANCH") or None) or default_branch_name(),
        create_branch=create_branch,
        trunk=_first(getattr(args, "trunk", None), settings.get("trunk"), DEFAULT_TRUNK),
        remote=_first(getattr(args, "remote", None), settings.get("remote"), DEFAULT_REMOTE),
        plan=plan_file.plan,
        config_path=config_path,
        log_dir=Path(log_dir) if log_dir else config_path.resolve().parent,
        dry_run=bool(getattr(args, "dry_run", False)),
        force=bool(getattr(args, "force", False)),
        repo_filter=getattr(args, "repo", None),
        verbose=bool(getattr(args, "verbose", False)),
    )
