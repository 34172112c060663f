"""Shared fixtures: fake checkouts and real git repositories."""

import subprocess

import pytest

from fakes import FakeRepo, FakeVcs
from helpers import commit_file, git


@pytest.fixture
def fake_checkouts(tmp_path):
    """Factory: create directories and matching FakeRepo entries."""
    repos = {}

    def make(*names: str, **repo_kwargs) -> FakeVcs:
        for name in names:
            path = tmp_path / name
            path.mkdir(parents=True, exist_ok=True)
            repos[path] = FakeRepo(**repo_kwargs)
        return FakeVcs(repos)

    return make


@pytest.fixture
def git_env(monkeypatch, tmp_path):
    """Isolate git from the user's configuration and give it an identity."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Patch Tester")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tester@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Patch Tester")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tester@example.com")


@pytest.fixture
def upstream(tmp_path, git_env):
    """A repository with a master history and two change branches.

    change-1 adds a file; change-2 rewrites base.txt and conflicts with any
    local edit of it.
    """
    repo = tmp_path / "upstream"
    repo.mkdir()
    git(repo, "init", "-q", "-b", "master")
    commit_file(repo, "base.txt", "base\n", "base")

    git(repo, "checkout", "-q", "-b", "change-1")
    commit_file(repo, "one.txt", "one\n", "change 1")
    git(repo, "checkout", "-q", "master")

    git(repo, "checkout", "-q", "-b", "change-2")
    commit_file(repo, "base.txt", "conflicting\n", "change 2")
    git(repo, "checkout", "-q", "master")
    return repo


@pytest.fixture
def checkout(tmp_path, upstream):
    """A clone of upstream with origin configured, on master."""
    path = tmp_path / "work" / "common"
    path.parent.mkdir()
    subprocess.run(
        ["git", "clone", "-q", "-b", "master", str(upstream), str(path)],
        capture_output=True, text=True, check=True,
    )
    return path
