"""
Metadata diff rendering

Turns ``git diff`` output for the store directory into a report keyed by
the tracked paths the store entries stand for.

Two passes:

1. parse_diff groups the raw line stream into one DiffEntry per store
   file. File identity comes from the ---/+++ markers, or from the
   ``diff --git`` header for entries that have no markers (empty files).
   Hunk line counts decide which lines are content, so a content line can
   never be mistaken for a file marker.
2. meta_diff filters the entries for the requested mode and renders them.

Changed-only mode (the default) reports entries with content lines;
creating or deleting a record counts as a change. Full-tree mode also
reports entries that only exist on one side but carry no content lines.

Unmerged entries come out of git as combined diffs (``diff --cc``,
``@@@`` hunks, one prefix column per parent). They are always reported.
"""

import logging
import re
from dataclasses import dataclass, field

from . import codec
from .errors import InvalidStorageKey
from .store import is_valid_path

logger = logging.getLogger(__name__)

NULL_PATH = "/dev/null"

ADDED = "added"
REMOVED = "removed"
MODIFIED = "modified"
CONFLICTED = "conflicted"

# "@@ -1 +1 @@" for a plain diff, "@@@ -1 -1 +1,5 @@@" for two parents
_HUNK_RE = re.compile(r"^(@{2,}) ((?:-\d+(?:,\d+)? )+)\+\d+(?:,(\d+))? \1")
_OLD_RANGE_RE = re.compile(r"-\d+(?:,(\d+))?")
_COMBINED_PREFIXES = ("diff --cc ", "diff --combined ")


@dataclass
class DiffEntry:
    """Changes to the store entry of one tracked path."""

    path: str
    key: str
    status: str = MODIFIED
    added_lines: list = field(default_factory=list)
    removed_lines: list = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.added_lines or self.removed_lines)

    def render(self) -> list[str]:
        suffix = {ADDED: " (new)", REMOVED: " (deleted)", CONFLICTED: " (conflict)"}.get(
            self.status, ""
        )
        lines = [f"{self.path}{suffix}"]
        lines += [f"  - {line}" for line in self.removed_lines]
        lines += [f"  + {line}" for line in self.added_lines]
        return lines

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status,
            "removed": list(self.removed_lines),
            "added": list(self.added_lines),
        }


@dataclass
class DiffReport:
    entries: list = field(default_factory=list)
    full_tree: bool = False

    @property
    def has_differences(self) -> bool:
        return bool(self.entries)

    @property
    def lines(self) -> list[str]:
        out = []
        for entry in self.entries:
            out.extend(entry.render())
        return out

    def to_dict(self) -> dict:
        return {
            "full_tree": self.full_tree,
            "differences": self.has_differences,
            "entries": [e.to_dict() for e in self.entries],
        }


def _marker_key(marker: str) -> str | None:
    """Storage key named by a ---/+++ marker, None for /dev/null."""
    path = marker.split("\t", 1)[0]
    if path == NULL_PATH:
        return None
    return path.rsplit("/", 1)[-1]


def _header_key(line: str) -> str | None:
    """Storage key from a ``diff --git a/X b/X`` or ``diff --cc X`` header line."""
    for prefix in _COMBINED_PREFIXES:
        if line.startswith(prefix):
            return line[len(prefix):].rsplit("/", 1)[-1] or None
    _, sep, b_side = line[len("diff --git "):].rpartition(" b/")
    if not sep:
        return None
    return b_side.rsplit("/", 1)[-1]


@dataclass
class _Block:
    """Raw lines of one file section, before its identity is resolved."""

    header_key: str | None = None
    old_key: str | None = None
    new_key: str | None = None
    status: str = MODIFIED
    added: list = field(default_factory=list)
    removed: list = field(default_factory=list)

    def set_status(self, status: str) -> None:
        # An unmerged entry stays conflicted whatever its sides look like
        if self.status != CONFLICTED:
            self.status = status

    def to_entry(self) -> DiffEntry | None:
        key = self.new_key or self.old_key or self.header_key
        if not key or key.startswith("."):
            # Leftover temporary files are not store entries
            return None
        try:
            path = codec.decode(key)
        except InvalidStorageKey as e:
            logger.warning("Ignoring store entry: %s", e)
            return None
        if not is_valid_path(path):
            logger.warning("Ignoring store entry %s: invalid path %r", key, path)
            return None
        return DiffEntry(
            path=path,
            key=key,
            status=self.status,
            added_lines=self.added,
            removed_lines=self.removed,
        )


def _split_blocks(lines) -> list[_Block]:
    """First pass: cut the stream into per-file blocks."""
    blocks = []
    block = None
    in_header = False
    # Lines still expected from the current hunk, one count per parent
    old_left = []
    new_left = 0

    for line in lines:
        line = line.rstrip("\n")

        if new_left > 0 or any(n > 0 for n in old_left):
            if line.startswith("\\"):
                # "\ No newline at end of file"
                continue
            columns, text = line[: len(old_left)], line[len(old_left):]
            # A "-" column marks the parents that had a removed line; on any
            # other line, a blank column marks the parents that have it
            if "-" in columns:
                block.removed.append(text)
                present = "-"
            else:
                if "+" in columns:
                    block.added.append(text)
                new_left -= 1
                present = " "
            for i, tag in enumerate(columns):
                if tag == present:
                    old_left[i] -= 1
            continue

        if line.startswith("diff --git ") or line.startswith(_COMBINED_PREFIXES):
            block = _Block(header_key=_header_key(line))
            if not line.startswith("diff --git "):
                block.status = CONFLICTED
            blocks.append(block)
            in_header = True
        elif line.startswith("--- "):
            if not in_header:
                # Plain unified diff with no git header
                block = _Block()
                blocks.append(block)
                in_header = True
            block.old_key = _marker_key(line[4:])
            if block.old_key is None:
                block.set_status(ADDED)
        elif line.startswith("+++ ") and block is not None:
            block.new_key = _marker_key(line[4:])
            if block.new_key is None:
                block.set_status(REMOVED)
        elif line.startswith("new file mode") and block is not None:
            block.set_status(ADDED)
        elif line.startswith("deleted file mode") and block is not None:
            block.set_status(REMOVED)
        elif line.startswith("@@") and block is not None:
            m = _HUNK_RE.match(line)
            if m:
                old_left = [int(n) if n else 1 for n in _OLD_RANGE_RE.findall(m.group(2))]
                new_left = int(m.group(3)) if m.group(3) is not None else 1
            in_header = False

    return blocks


def parse_diff(lines) -> list[DiffEntry]:
    """Group a raw diff line stream into DiffEntry objects.

    Files whose names are not storage keys are skipped with a warning,
    the same way MetadataStore.list treats them.
    """
    entries = []
    for block in _split_blocks(lines):
        entry = block.to_entry()
        if entry is not None:
            entries.append(entry)
    return entries


def meta_diff(lines, full_tree: bool = False) -> DiffReport:
    """
    Render a diff of the store as path-keyed change blocks.

    ``full_tree`` also reports entries that were created or deleted
    without any content lines. Conflicted entries are reported in both
    modes.
    """
    kept = []
    for entry in parse_diff(lines):
        if entry.has_content or entry.status == CONFLICTED:
            kept.append(entry)
        elif full_tree and entry.status in (ADDED, REMOVED):
            kept.append(entry)
    return DiffReport(entries=kept, full_tree=full_tree)
