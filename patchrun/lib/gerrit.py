"""
Gerrit integration helpers.

Resolves change numbers to fetchable patchset references by querying the
Gerrit SSH command interface:

    ssh -p 29418 user@host gerrit query --current-patch-set --format=json 850035

The query prints one JSON object per line: matching changes, then a
{"type": "stats", ...} trailer.
"""

import json
import logging
import re
import subprocess
from dataclasses import dataclass

from .errors import ResolutionError, ResolutionFailure

logger = logging.getLogger(__name__)


DEFAULT_PORT = 29418

# ssh ConnectTimeout for every Gerrit call (seconds)
CONNECT_TIMEOUT_SECONDS = 10

# Upper bound on a whole query once connected (seconds)
QUERY_TIMEOUT_SECONDS = 60

# ssh exits with 255 when the connection itself failed
SSH_CONNECTION_FAILED = 255

# ssh stderr fragments meaning the server was never reached; other 255 exits
# (authentication, host key) reached the server and count as query failures
UNREACHABLE_MARKERS = (
    "timed out",
    "connection refused",
    "no route to host",
    "could not resolve hostname",
    "network is unreachable",
)

_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass(frozen=True)
class GerritSettings:
    """Where and as whom to reach the review server."""
    user: str
    host: str
    port: int = DEFAULT_PORT

    @property
    def ssh_target(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def display(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


@dataclass(frozen=True)
class ResolvedChange:
    """A change pinned to its current patchset."""
    change_id: str
    patchset_number: int
    fetch_ref: str


def normalize_change_id(raw) -> str:
    """Strip everything but digits ("I850035," -> "850035")."""
    return _NON_DIGITS.sub("", str(raw))


def fetch_ref(change_id: str, patchset_number: int) -> str:
    """
    Build the Gerrit ref for a change's patchset.

    The shard is the last two digits of the change number, zero-padded:
    fetch_ref("850035", 3) -> "refs/changes/35/850035/3"
    fetch_ref("7", 1)      -> "refs/changes/07/7/1"
    """
    shard = change_id[-2:].rjust(2, "0")
    return f"refs/changes/{shard}/{change_id}/{patchset_number}"


def parse_query_output(change_id: str, output: str) -> int:
    """
    Extract currentPatchSet.number from `gerrit query --format=json` output.

    Raises:
        ResolutionError: UNPARSEABLE for bad JSON or a non-integer number,
            NOT_FOUND when no record carries a current patchset
    """
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ResolutionError(change_id, ResolutionFailure.UNPARSEABLE, str(e)) from None
        if not isinstance(record, dict):
            raise ResolutionError(change_id, ResolutionFailure.UNPARSEABLE, "record is not an object")
        if record.get("type") == "error":
            raise ResolutionError(
                change_id, ResolutionFailure.QUERY_FAILED, record.get("message", "")
            )
        patch_set = record.get("currentPatchSet")
        if patch_set is None:
            continue
        try:
            return int(patch_set["number"])
        except (KeyError, TypeError, ValueError):
            raise ResolutionError(
                change_id, ResolutionFailure.UNPARSEABLE,
                f"bad currentPatchSet: {patch_set!r}",
            ) from None
    raise ResolutionError(change_id, ResolutionFailure.NOT_FOUND, "no current patchset in response")


def _unreachable(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in UNREACHABLE_MARKERS)


class GerritResolver:
    """Resolves change ids against one Gerrit server over SSH."""

    def __init__(
        self,
        settings: GerritSettings,
        connect_timeout: int = CONNECT_TIMEOUT_SECONDS,
        query_timeout: int = QUERY_TIMEOUT_SECONDS,
    ):
        self.settings = settings
        self.connect_timeout = connect_timeout
        self.query_timeout = query_timeout

    def _ssh(self, *command: str) -> list[str]:
        return [
            "ssh",
            "-p", str(self.settings.port),
            "-o", f"ConnectTimeout={self.connect_timeout}",
            "-o", "BatchMode=yes",
            self.settings.ssh_target,
            *command,
        ]

    def fetch_url(self, project: str) -> str:
        """Repository URL for git fetch, e.g. ssh://jdoe@review:29418/platform/io."""
        return f"ssh://{self.settings.user}@{self.settings.host}:{self.settings.port}/{project}"

    def check_connection(self) -> bool:
        """Check the server answers `gerrit version` without prompting."""
        try:
            result = subprocess.run(
                self._ssh("gerrit", "version"),
                capture_output=True,
                text=True,
                timeout=self.query_timeout,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, subprocess.SubprocessError, OSError):
            return False

    def resolve(self, raw_change_id) -> ResolvedChange:
        """
        Resolve a change id to its current patchset and fetch ref.

        Raises:
            ResolutionError: see ResolutionFailure for the reasons
        """
        change_id = normalize_change_id(raw_change_id)
        if not change_id:
            raise ResolutionError(str(raw_change_id), ResolutionFailure.INVALID, "no digits in change id")

        cmd = self._ssh("gerrit", "query", "--current-patch-set", "--format=json", change_id)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.query_timeout,
            )
        except subprocess.TimeoutExpired:
            raise ResolutionError(
                change_id, ResolutionFailure.TIMEOUT,
                f"no answer from {self.settings.host} within {self.query_timeout}s",
            ) from None

        if result.returncode != 0:
            stderr = result.stderr.strip()
            if result.returncode == SSH_CONNECTION_FAILED and _unreachable(stderr):
                raise ResolutionError(change_id, ResolutionFailure.TIMEOUT, stderr)
            raise ResolutionError(change_id, ResolutionFailure.QUERY_FAILED, stderr)

        patchset = parse_query_output(change_id, result.stdout)
        resolved = ResolvedChange(
            change_id=change_id,
            patchset_number=patchset,
            fetch_ref=fetch_ref(change_id, patchset),
        )
        logger.debug(f"Resolved {change_id} -> {resolved.fetch_ref}")
        return resolved
