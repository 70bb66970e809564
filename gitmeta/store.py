"""
Metadata store

A directory of small text files, one per tracked path. Each file is named
by the encoded path (see codec) and holds exactly one line:

    <mode> <owner>:<group>

where mode is four octal digits. The directory is committed alongside the
project, so git carries the metadata through branches and merges.

Thread Safety:
    Not safe for concurrent use. gitmeta assumes a single invocation owns
    the store for its whole run; concurrent runs race, last writer wins.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from . import codec
from .errors import CorruptRecord, InvalidStorageKey

logger = logging.getLogger(__name__)

STORE_DIR_MODE = 0o700
TEMP_PREFIX = ".tmp."

_MODE_RE = re.compile(r"[0-7]{4}")


@dataclass(frozen=True)
class MetadataRecord:
    """Permission bits, owner and group of one path."""

    mode: str
    owner: str
    group: str

    def __post_init__(self):
        if not _MODE_RE.fullmatch(self.mode):
            raise ValueError(f"mode must be four octal digits, got {self.mode!r}")
        if not self.owner or not self.group:
            raise ValueError("owner and group must be non-empty")

    @classmethod
    def from_mode(cls, mode: int, owner: str, group: str) -> "MetadataRecord":
        return cls(mode=f"{mode & 0o7777:04o}", owner=owner, group=group)

    @property
    def mode_bits(self) -> int:
        return int(self.mode, 8)

    def to_line(self) -> str:
        return f"{self.mode} {self.owner}:{self.group}"

    @classmethod
    def parse(cls, line: str) -> "MetadataRecord":
        """Parse a stored line. Raises ValueError if it is malformed."""
        mode, sep, rest = line.strip().partition(" ")
        owner, colon, group = rest.partition(":")
        if not sep or not colon:
            raise ValueError(f"expected '<mode> <owner>:<group>', got {line!r}")
        return cls(mode=mode, owner=owner, group=group)

    def __str__(self) -> str:
        return self.to_line()


def is_valid_path(path: str) -> bool:
    """A usable repository-relative path: non-empty, relative, no '..'."""
    if not path or path.startswith("/"):
        return False
    parts = PurePosixPath(path).parts
    return bool(parts) and ".." not in parts and "\0" not in path


class MetadataStore:
    """
    Persistent mapping of tracked path to MetadataRecord.

    ``rel_dir`` is the store directory relative to the work tree root;
    it is what gets handed to ``vcs`` when a removal must be staged.
    """

    def __init__(self, store_dir: Path, rel_dir: str, vcs):
        self.store_dir = Path(store_dir)
        self.rel_dir = rel_dir
        self.vcs = vcs

    def _entry(self, path: str) -> Path:
        return self.store_dir / codec.encode(path)

    def list(self) -> list[str]:
        """All stored paths, ordered by storage key."""
        if not self.store_dir.is_dir():
            return []
        paths = []
        for key in sorted(os.listdir(self.store_dir)):
            if key.startswith("."):
                continue
            try:
                path = codec.decode(key)
            except InvalidStorageKey as e:
                logger.warning("Ignoring store entry: %s", e)
                continue
            if not is_valid_path(path):
                logger.warning("Ignoring store entry %s: invalid path %r", key, path)
                continue
            paths.append(path)
        return paths

    def read(self, path: str) -> MetadataRecord | None:
        """The stored record, or None if ``path`` is not tracked yet."""
        try:
            raw = self._entry(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return MetadataRecord.parse(raw)
        except ValueError:
            raise CorruptRecord(path, raw) from None

    def write(self, path: str, record: MetadataRecord) -> None:
        """Create or overwrite the entry for ``path``.

        Written through a temporary file and renamed into place so a crash
        never leaves a truncated record behind.
        """
        self.store_dir.mkdir(mode=STORE_DIR_MODE, parents=True, exist_ok=True)
        target = self._entry(path)
        content = (record.to_line() + "\n").encode("utf-8")
        fd, tmp_path = tempfile.mkstemp(dir=str(self.store_dir), prefix=TEMP_PREFIX)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.chmod(tmp_path, 0o644)
            Path(tmp_path).replace(target)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def delete(self, path: str) -> None:
        """Remove the entry for ``path`` and stage the removal."""
        key = codec.encode(path)
        (self.store_dir / key).unlink(missing_ok=True)
        self.vcs.remove_path(f"{self.rel_dir}/{key}")

    def remove_stale_temp(self) -> "list[str]":
        """Delete temporary files left by an interrupted write."""
        if not self.store_dir.is_dir():
            return []
        removed = []
        for name in sorted(os.listdir(self.store_dir)):
            if name.startswith(TEMP_PREFIX):
                (self.store_dir / name).unlink(missing_ok=True)
                logger.warning("Removed stale temporary file %s", name)
                removed.append(name)
        return removed

    def items(self):
        """(path, record) pairs for every stored path."""
        return [(path, self.read(path)) for path in self.list()]
