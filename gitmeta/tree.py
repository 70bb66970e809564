"""
Tree reconciliation

Brings the metadata store in line with what git tracks right now:

1. List every tracked file, plus every directory that holds one. Git does
   not track directories, so they are inferred from the file list rather
   than walked on disk (a walk would pick up ignored directories).
2. Drop store entries for paths that are no longer listed.
3. For each listed path, read its mode/owner/group and rewrite the entry
   if it is new or differs from what is stored.

Running build_tree twice with no filesystem change in between yields an
empty result the second time.
"""

import grp
import logging
import os
import pwd
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .errors import CorruptRecord, ReconcileError
from .store import MetadataRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Change:
    """One added or updated store entry. ``old`` is None for a new path."""

    path: str
    old: MetadataRecord | None
    new: MetadataRecord

    def describe(self) -> str:
        before = "new file" if self.old is None else self.old.to_line()
        return f"{self.path}: {before} -> {self.new.to_line()}"


@dataclass
class ReconcileResult:
    removed: list = field(default_factory=list)
    changed: list = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.removed and not self.changed

    def summary_lines(self) -> list[str]:
        """Human summary; zero counts are left out."""
        lines = []
        if self.removed:
            lines.append(f"Removed {len(self.removed)} entries")
        if self.changed:
            lines.append(f"Updated {len(self.changed)} entries")
        return lines

    def to_dict(self) -> dict:
        return {
            "removed": list(self.removed),
            "changed": [
                {
                    "path": c.path,
                    "old": c.old.to_line() if c.old else None,
                    "new": c.new.to_line(),
                }
                for c in self.changed
            ],
        }


def list_tree(ctx, vcs) -> list[str]:
    """Tracked files plus their parent directories, sorted and deduplicated."""
    exclude = PurePosixPath(ctx.meta_rel)
    paths = set()
    for name in vcs.list_tracked_files():
        p = PurePosixPath(name)
        if p == exclude or exclude in p.parents:
            continue
        paths.add(str(p))
        for parent in p.parents:
            if str(parent) == ".":
                break
            paths.add(str(parent))
    return sorted(paths)


def _owner_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def read_live(path: os.PathLike) -> MetadataRecord:
    """Mode, owner and group of ``path`` without following symlinks."""
    st = os.lstat(path)
    return MetadataRecord.from_mode(st.st_mode, _owner_name(st.st_uid), _group_name(st.st_gid))


def build_tree(ctx, vcs, store) -> ReconcileResult:
    """
    Sync the store to the current tracked listing and live metadata.

    A path that vanished between listing and reading is skipped. Any other
    failure to read a listed path aborts with ReconcileError; partial
    metadata is worse than none.
    """
    current = list_tree(ctx, vcs)
    current_set = set(current)
    result = ReconcileResult()

    for path in store.list():
        if path not in current_set:
            store.delete(path)
            result.removed.append(path)
            logger.info("%s: removed", path)

    for path in current:
        try:
            live = read_live(ctx.root / path)
        except (FileNotFoundError, NotADirectoryError):
            logger.debug("%s vanished before it could be read, skipping", path)
            continue
        except OSError as e:
            raise ReconcileError(f"Cannot read metadata of {path}: {e.strerror or e}") from e

        try:
            stored = store.read(path)
        except CorruptRecord as e:
            logger.warning("%s; rewriting it", e)
            stored = None
        if stored == live:
            continue
        store.write(path, live)
        change = Change(path, stored, live)
        result.changed.append(change)
        logger.info("%s", change.describe())

    return result
