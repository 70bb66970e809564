"""
Permission applier

Replays stored metadata onto the work tree, typically from a post-merge
or post-checkout hook. Every stored path must exist and have a readable
record: applying half of the metadata would leave the tree in a state
nobody asked for, so any inconsistency stops the run.

Symbolic links are never touched. Their own mode and ownership are not
managed, whatever the store says.
"""

import grp
import logging
import os
import pwd
from dataclasses import dataclass, field

from .errors import ConsistencyError, CorruptRecord

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    applied: list = field(default_factory=list)
    skipped: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"applied": list(self.applied), "skipped": list(self.skipped)}


def resolve_uid(owner: str) -> int:
    try:
        return pwd.getpwnam(owner).pw_uid
    except KeyError:
        if owner.isdigit():
            return int(owner)
        raise ConsistencyError(f"Unknown user {owner!r}") from None


def resolve_gid(group: str) -> int:
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        if group.isdigit():
            return int(group)
        raise ConsistencyError(f"Unknown group {group!r}") from None


def apply_permissions(ctx, store, dry_run: bool = False) -> ApplyResult:
    """Set mode, owner and group of every stored path from its record."""
    root = ctx.root.resolve()
    result = ApplyResult()

    # Deepest paths first, so a directory losing its search bit does not
    # lock us out of its children
    for path in sorted(store.list(), key=lambda p: p.count("/"), reverse=True):
        target = ctx.root / path
        try:
            target.parent.resolve().relative_to(root)
        except ValueError:
            raise ConsistencyError(f"{path}: resolves outside the repository") from None

        try:
            record = store.read(path)
        except CorruptRecord as e:
            raise ConsistencyError(str(e)) from None
        if record is None:
            raise ConsistencyError(f"{path}: no metadata recorded")

        if target.is_symlink():
            logger.debug("%s is a symlink, skipping", path)
            result.skipped.append(path)
            continue
        if not target.exists():
            raise ConsistencyError(f"{path}: listed in the metadata store but missing on disk")

        uid = resolve_uid(record.owner)
        gid = resolve_gid(record.group)
        if not dry_run:
            st = os.lstat(target)
            # chown may clear set-id bits, so the mode goes last
            if (st.st_uid, st.st_gid) != (uid, gid):
                os.chown(target, uid, gid, follow_symlinks=False)
            os.chmod(target, record.mode_bits)
        logger.info("%s: %s", path, record.to_line())
        result.applied.append(path)

    return result
