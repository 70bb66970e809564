"""Diff parsing and rendering tests."""

from gitmeta.codec import encode
from gitmeta.diff import ADDED, CONFLICTED, MODIFIED, REMOVED, meta_diff, parse_diff

STORE = ".gitmeta/store"


def modified(path, old, new):
    key = encode(path)
    return [
        f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
        "index 1111111..2222222 100644",
        f"--- a/{STORE}/{key}",
        f"+++ b/{STORE}/{key}",
        "@@ -1 +1 @@",
        f"-{old}",
        f"+{new}",
    ]


def created(path, line):
    key = encode(path)
    return [
        f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
        "new file mode 100644",
        "index 0000000..3333333",
        "--- /dev/null",
        f"+++ b/{STORE}/{key}",
        "@@ -0,0 +1 @@",
        f"+{line}",
    ]


def deleted(path, line):
    key = encode(path)
    return [
        f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
        "deleted file mode 100644",
        "index 3333333..0000000",
        f"--- a/{STORE}/{key}",
        "+++ /dev/null",
        "@@ -1 +0,0 @@",
        f"-{line}",
    ]


def created_empty(path):
    key = encode(path)
    return [
        f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
        "new file mode 100644",
        "index 0000000..e69de29",
    ]


def deleted_empty(path):
    key = encode(path)
    return [
        f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
        "deleted file mode 100644",
        "index e69de29..0000000",
    ]


def conflicted(path, ours, theirs):
    key = encode(path)
    return [
        f"diff --cc {STORE}/{key}",
        "index 1111111,2222222..0000000",
        f"--- a/{STORE}/{key}",
        f"+++ b/{STORE}/{key}",
        "@@@ -1,1 -1,1 +1,5 @@@",
        "++<<<<<<< HEAD",
        f" +{ours}",
        "++=======",
        f"+ {theirs}",
        "++>>>>>>> other",
    ]


class TestParseDiff:
    def test_modified_entry(self):
        entries = parse_diff(modified("b/c", "0644 u:g", "0755 u:g"))
        assert len(entries) == 1
        e = entries[0]
        assert e.path == "b/c"
        assert e.status == MODIFIED
        assert e.removed_lines == ["0644 u:g"]
        assert e.added_lines == ["0755 u:g"]

    def test_created_and_deleted(self):
        entries = parse_diff(created("new", "0644 u:g") + deleted("old", "0600 u:g"))
        assert [(e.path, e.status) for e in entries] == [("new", ADDED), ("old", REMOVED)]
        assert entries[0].added_lines == ["0644 u:g"]
        assert entries[1].removed_lines == ["0600 u:g"]

    def test_header_only_entries(self):
        entries = parse_diff(created_empty("e1") + deleted_empty("e2"))
        assert [(e.path, e.status, e.has_content) for e in entries] == [
            ("e1", ADDED, False),
            ("e2", REMOVED, False),
        ]

    def test_plain_unified_diff_without_git_header(self):
        k1, k2 = encode("one"), encode("dir/two")
        lines = [
            f"--- a/{STORE}/{k1}",
            f"+++ b/{STORE}/{k1}",
            "@@ -1 +1 @@",
            "-0644 u:g",
            "+0600 u:g",
            "--- /dev/null",
            f"+++ b/{STORE}/{k2}",
            "@@ -0,0 +1 @@",
            "+0755 u:g",
        ]
        entries = parse_diff(lines)
        assert [(e.path, e.status) for e in entries] == [("one", MODIFIED), ("dir/two", ADDED)]
        assert entries[1].added_lines == ["0755 u:g"]

    def test_content_lines_that_look_like_markers(self):
        key = encode("weird")
        lines = [
            f"diff --git a/{STORE}/{key} b/{STORE}/{key}",
            f"--- a/{STORE}/{key}",
            f"+++ b/{STORE}/{key}",
            "@@ -1,2 +1,2 @@",
            "--- not a marker",
            "+++ not a marker",
            " context",
        ]
        entries = parse_diff(lines)
        assert len(entries) == 1
        assert entries[0].removed_lines == ["-- not a marker"]
        assert entries[0].added_lines == ["++ not a marker"]

    def test_no_newline_marker_ignored(self):
        lines = modified("a", "0644 u:g", "0600 u:g")
        lines.insert(6, "\\ No newline at end of file")
        entries = parse_diff(lines)
        assert entries[0].removed_lines == ["0644 u:g"]
        assert entries[0].added_lines == ["0600 u:g"]

    def test_temp_files_ignored(self):
        lines = [
            f"diff --git a/{STORE}/.tmp.x b/{STORE}/.tmp.x",
            "new file mode 100644",
            "--- /dev/null",
            f"+++ b/{STORE}/.tmp.x",
            "@@ -0,0 +1 @@",
            "+0644 u:g",
        ]
        assert parse_diff(lines) == []

    def test_foreign_files_skipped_with_warning(self, caplog):
        lines = [
            f"diff --git a/{STORE}/README b/{STORE}/README",
            "new file mode 100644",
            "--- /dev/null",
            f"+++ b/{STORE}/README",
            "@@ -0,0 +1 @@",
            "+notes about the store",
        ]
        lines += modified("kept", "0644 u:g", "0600 u:g")
        entries = parse_diff(lines)
        assert [e.path for e in entries] == ["kept"]
        assert "Ignoring store entry" in caplog.text
        assert "README" in caplog.text

    def test_conflicted_entry(self):
        entries = parse_diff(conflicted("a.txt", "0640 u:g", "0600 u:g"))
        assert len(entries) == 1
        e = entries[0]
        assert (e.path, e.status) == ("a.txt", CONFLICTED)
        assert e.added_lines == [
            "<<<<<<< HEAD",
            "0640 u:g",
            "=======",
            "0600 u:g",
            ">>>>>>> other",
        ]
        assert e.removed_lines == []

    def test_block_after_conflict_parsed(self):
        stream = conflicted("a.txt", "0640 u:g", "0600 u:g")
        stream += modified("b", "0644 u:g", "0755 u:g")
        entries = parse_diff(stream)
        assert [(e.path, e.status) for e in entries] == [("a.txt", CONFLICTED), ("b", MODIFIED)]
        assert entries[1].added_lines == ["0755 u:g"]

    def test_combined_removed_lines(self):
        key = encode("c")
        lines = [
            f"diff --combined {STORE}/{key}",
            f"--- a/{STORE}/{key}",
            f"+++ b/{STORE}/{key}",
            "@@@ -1,1 -1,1 +1,1 @@@",
            "- 0644 u:g",
            " -0600 u:g",
            "++0640 u:g",
        ]
        e = parse_diff(lines)[0]
        assert e.status == CONFLICTED
        assert e.removed_lines == ["0644 u:g", "0600 u:g"]
        assert e.added_lines == ["0640 u:g"]

    def test_empty_stream(self):
        assert parse_diff([]) == []


class TestMetaDiff:
    def test_changed_only_names_only_changed_path(self):
        report = meta_diff(modified("b/c", "0644 u:g", "0600 u:g"))
        assert report.has_differences
        assert report.lines == ["b/c", "  - 0644 u:g", "  + 0600 u:g"]

    def test_creation_and_deletion_count_as_changes(self):
        report = meta_diff(created("n", "0644 u:g") + deleted("o", "0644 u:g"))
        assert report.lines == ["n (new)", "  + 0644 u:g", "o (deleted)", "  - 0644 u:g"]

    def test_presence_only_hidden_by_default(self):
        report = meta_diff(created_empty("ghost"))
        assert not report.has_differences
        assert report.lines == []

    def test_full_tree_reports_presence_only(self):
        stream = modified("b/c", "0644 u:g", "0600 u:g") + created_empty("ghost")
        stream += deleted_empty("gone")
        report = meta_diff(stream, full_tree=True)
        assert [e.path for e in report.entries] == ["b/c", "ghost", "gone"]
        assert "ghost (new)" in report.lines
        assert "gone (deleted)" in report.lines

    def test_full_tree_same_content_as_default_for_content_changes(self):
        stream = modified("x", "0644 u:g", "0600 u:g")
        assert meta_diff(stream).lines == meta_diff(stream, full_tree=True).lines

    def test_no_differences(self):
        report = meta_diff([], full_tree=True)
        assert not report.has_differences
        assert report.to_dict() == {"full_tree": True, "differences": False, "entries": []}

    def test_conflict_reported_in_changed_only_mode(self):
        report = meta_diff(conflicted("a.txt", "0640 u:g", "0600 u:g"))
        assert report.has_differences
        assert report.lines[0] == "a.txt (conflict)"
        assert "  + 0600 u:g" in report.lines

    def test_conflict_without_hunks_still_reported(self):
        report = meta_diff([f"diff --cc {STORE}/{encode('x')}"])
        assert [(e.path, e.status) for e in report.entries] == [("x", CONFLICTED)]
