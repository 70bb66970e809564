"""
Git collaborator

Everything gitmeta needs from version control goes through GitBackend:
listing tracked files, diffing the metadata store, staging it, and
installing hook scripts. All git operations use subprocess calls to the
git CLI. No gitpython dependency required.
"""

import logging
import os
import stat
import subprocess
from pathlib import Path

from .errors import GitError, NotARepository

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 60

HOOK_SHEBANG = "#!/bin/sh"


def _git(
    args: list, cwd: Path, env: dict | None = None, timeout: int | None = None
) -> subprocess.CompletedProcess:
    """Run git command, raise GitError on failure or timeout."""
    full_env = dict(os.environ)
    if env:
        full_env.update(env)
    if timeout is None:
        timeout = GIT_TIMEOUT_SECONDS
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=str(cwd),
            capture_output=True,
            env=full_env,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise GitError(
            f"git {' '.join(args)} timed out after {timeout}s. "
            "This may indicate a hung git hook, network issue, or filesystem problem."
        )
    except FileNotFoundError:
        raise GitError("git executable not found on PATH")
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"git {' '.join(args)} failed: {stderr}")
    return result


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def find_root(start: Path) -> Path:
    """Return the top of the git work tree containing ``start``."""
    start = Path(start)
    if not start.is_dir():
        raise NotARepository(start)
    try:
        result = _git(["rev-parse", "--show-toplevel"], cwd=start)
    except GitError:
        raise NotARepository(start) from None
    top = _decode(result.stdout).strip()
    if not top:
        # Inside a bare repository or the .git directory itself
        raise NotARepository(start)
    return Path(top)


class GitBackend:
    """
    Version control operations for one work tree.

    ``exclude`` is the repository-relative directory owned by gitmeta;
    nothing under it is ever reported as a tracked file.
    """

    def __init__(self, root: Path, exclude: str, timeout: int | None = None):
        self.root = Path(root)
        self.exclude = exclude.strip("/")
        self.timeout = timeout

    def _run(self, args: list) -> subprocess.CompletedProcess:
        return _git(args, cwd=self.root, timeout=self.timeout)

    def _excluded(self, path: str) -> bool:
        return path == self.exclude or path.startswith(self.exclude + "/")

    def list_tracked_files(self) -> list[str]:
        """Full repository-relative names of every file in the index."""
        result = self._run(["ls-files", "-z", "--full-name"])
        names = _decode(result.stdout).split("\0")
        return [n for n in names if n and not self._excluded(n)]

    def diff(self, ref1: str | None = None, ref2: str | None = None, path: str = ".") -> list[str]:
        """
        Unified diff of ``path`` as a list of lines.

        No refs compares the work tree against the index, one ref compares
        the work tree against that ref, two refs compare the two commits.
        """
        # Fixed prefixes whatever diff.noprefix / diff.mnemonicPrefix say
        args = [
            "diff",
            "--no-color",
            "--no-ext-diff",
            "--no-renames",
            "--src-prefix=a/",
            "--dst-prefix=b/",
        ]
        if ref1:
            args.append(ref1)
        if ref2:
            if not ref1:
                raise ValueError("ref2 given without ref1")
            args.append(ref2)
        args += ["--", path]
        result = self._run(args)
        return _decode(result.stdout).splitlines()

    def stage_all(self, path: str) -> None:
        """Stage every change under ``path``, deletions included."""
        self._run(["add", "-A", "--", path])

    def remove_path(self, path: str) -> None:
        """Stage removal of a single file; a no-op if git does not know it."""
        self._run(["rm", "--cached", "--ignore-unmatch", "--quiet", "--", path])

    def intend_to_add(self, path: str) -> None:
        """Record untracked files under ``path`` so working-tree diffs show them."""
        self._run(["add", "-N", "--", path])

    def hooks_dir(self) -> Path:
        """Directory git runs hooks from (honours core.hooksPath)."""
        result = self._run(["rev-parse", "--git-path", "hooks"])
        hooks = Path(_decode(result.stdout).strip())
        if not hooks.is_absolute():
            hooks = self.root / hooks
        return hooks

    def install_hook(self, name: str, invocation: str) -> bool:
        """
        Append ``invocation`` to the hook script ``name``.

        Creates the script with a shell interpreter line if it is missing.
        Returns False if the invocation was already present.
        """
        hooks = self.hooks_dir()
        hooks.mkdir(parents=True, exist_ok=True)
        hook_path = hooks / name

        if hook_path.exists():
            content = hook_path.read_text()
            lines = content.splitlines()
            if invocation in (line.strip() for line in lines):
                logger.info("Hook %s already runs %r", name, invocation)
                self._make_executable(hook_path)
                return False
            if content and not content.endswith("\n"):
                content += "\n"
        else:
            content = HOOK_SHEBANG + "\n"

        hook_path.write_text(content + invocation + "\n")
        self._make_executable(hook_path)
        logger.info("Installed %r into hook %s", invocation, hook_path)
        return True

    @staticmethod
    def _make_executable(path: Path) -> None:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
