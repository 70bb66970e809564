"""
Shared pytest configuration and fixtures.

Unit tests drive the core through FakeVCS, an in-memory stand-in for the
git collaborator. Tests that need a real git binary use ``requires_git``
and the ``git_repo`` fixture.
"""

import grp
import os
import pwd
import subprocess
from pathlib import Path

import pytest

from gitmeta.repo import MetaContext
from gitmeta.store import MetadataStore


def _has_git():
    """Check if git is available on the system."""
    try:
        subprocess.run(["git", "--version"], capture_output=True, check=True)
        return True
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False


requires_git = pytest.mark.skipif(not _has_git(), reason="git not available")


def current_owner() -> str:
    return pwd.getpwuid(os.getuid()).pw_name


def current_group() -> str:
    return grp.getgrgid(os.getgid()).gr_name


class FakeVCS:
    """Records calls instead of running git."""

    def __init__(self, files=()):
        self.files = list(files)
        self.removed = []
        self.staged = []

    def list_tracked_files(self):
        return list(self.files)

    def remove_path(self, path):
        self.removed.append(path)

    def stage_all(self, path):
        self.staged.append(path)


def make_files(root: Path, names) -> None:
    """Create each named file (and its parent directories) under root."""
    for name in names:
        p = root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(f"{name}\n")


@pytest.fixture
def ctx(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return MetaContext(root=root)


@pytest.fixture
def vcs():
    return FakeVCS()


@pytest.fixture
def store(ctx, vcs):
    return MetadataStore(ctx.store_dir, ctx.store_rel, vcs)


def git(cwd: Path, *args) -> str:
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True
    )
    return result.stdout


@pytest.fixture
def git_repo(tmp_path, monkeypatch):
    """A git work tree with one commit containing a.txt and lib/util.py."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_INDEX_FILE", raising=False)

    root = tmp_path / "repo"
    root.mkdir()
    git(root, "init", "-q")
    git(root, "config", "commit.gpgsign", "false")
    make_files(root, ["a.txt", "lib/util.py"])
    git(root, "add", "-A")
    git(root, "commit", "-q", "-m", "initial")
    return root
