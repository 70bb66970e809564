"""
gitmeta CLI

Keeps file permissions, owner and group under version control alongside
the files themselves. Installed as ``git-meta`` so git picks it up as
``git meta``. The commit and merge commands are meant to be run from the
hooks that ``init`` installs; diff and status are for people.

Every command outputs structured JSON when --json is passed.

Usage:
    git-meta init
    git-meta commit
    git-meta merge
    git-meta apply [--dry-run]
    git-meta diff [-a] [REF1] [REF2]
    git-meta status
    git-meta ls

Exit status:
    0  success (for diff/status: no differences)
    1  diff/status found differences
    2  error

Environment:
    GITMETA_NO_UPDATE  skip reconciliation before diffing
    GITMETA_PAGER      pager for diff output (falls back to PAGER)
"""

import argparse
import difflib
import json
import logging
import shlex
import subprocess
import sys
from pathlib import Path

import gitmeta as _gitmeta_pkg

from .apply import apply_permissions
from .diff import meta_diff
from .errors import NotARepository
from .repo import MetaRepository
from .tree import build_tree

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIFFERENCES = 1
EXIT_ERROR = 2


def open_repo(args) -> MetaRepository:
    return MetaRepository.find(Path(args.path or "."))


def print_json(data):
    print(json.dumps(data, indent=2, default=str))


def get_verbosity(args) -> int:
    """Return verbosity level: 0=quiet, 1=normal, 2=verbose."""
    if getattr(args, "json", False):
        return 1
    if getattr(args, "verbose", False):
        return 2
    if getattr(args, "quiet", False):
        return 0
    return 1


def configure_logging(args) -> None:
    """Log to stderr so stdout stays clean for diffs and JSON."""
    level = {0: logging.ERROR, 1: logging.WARNING, 2: logging.DEBUG}[get_verbosity(args)]
    logging.basicConfig(
        level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr
    )


def page(lines: list[str], pager: str | None, enabled: bool = True) -> None:
    """Show ``lines`` through the pager when writing to a terminal."""
    text = "".join(line + "\n" for line in lines)
    command = shlex.split(pager) if pager else []
    if not enabled or not command or command == ["cat"] or not sys.stdout.isatty():
        sys.stdout.write(text)
        return
    try:
        subprocess.run(command, input=text, text=True, check=False)
    except FileNotFoundError:
        logger.warning("Pager %r not found, writing directly", command[0])
        sys.stdout.write(text)


def reconcile(repo: MetaRepository, args):
    """Run build_tree and report what changed."""
    v = get_verbosity(args)
    result = build_tree(repo.ctx, repo.vcs, repo.store)
    if not args.json and v >= 1:
        if v >= 2:
            for path in result.removed:
                print(f"  - {path}", file=sys.stderr)
            for change in result.changed:
                print(f"  ~ {change.describe()}", file=sys.stderr)
        for line in result.summary_lines():
            print(line, file=sys.stderr)
    return result


# ── Commands ──────────────────────────────────────────────────


def cmd_init(args):
    v = get_verbosity(args)
    repo = open_repo(args)
    installed = {}
    for hook, invocation in repo.hook_invocations().items():
        installed[hook] = repo.vcs.install_hook(hook, invocation)

    if args.json:
        print_json({"root": str(repo.ctx.root), "hooks": installed})
    elif v >= 1:
        for hook, added in installed.items():
            mark = "✓ Installed" if added else "  Already present:"
            print(f"{mark} {hook} hook")
        if v >= 2:
            print(f"  Hooks directory: {repo.vcs.hooks_dir()}")
    return EXIT_OK


def cmd_commit(args):
    repo = open_repo(args)
    result = reconcile(repo, args)
    # Never stage what an interrupted write left behind
    repo.store.remove_stale_temp()
    if repo.ctx.meta_dir.exists():
        repo.vcs.stage_all(repo.ctx.meta_rel)
    if args.json:
        print_json(result.to_dict())
    return EXIT_OK


def cmd_merge(args):
    repo = open_repo(args)
    result = apply_permissions(repo.ctx, repo.store)
    if args.json:
        print_json(result.to_dict())
    elif get_verbosity(args) >= 2:
        print(f"Applied metadata to {len(result.applied)} paths", file=sys.stderr)
    return EXIT_OK


def cmd_apply(args):
    v = get_verbosity(args)
    repo = open_repo(args)
    result = apply_permissions(repo.ctx, repo.store, dry_run=args.dry_run)
    if args.json:
        print_json(result.to_dict())
    elif v >= 1:
        verb = "Would apply" if args.dry_run else "Applied"
        print(f"{verb} metadata to {len(result.applied)} paths")
        if result.skipped:
            print(f"  Skipped {len(result.skipped)} symlinks")
        if v >= 2:
            for path in result.applied:
                print(f"  {path}")
    return EXIT_OK


def _run_diff(args, full_tree: bool, ref1: str | None, ref2: str | None) -> int:
    repo = open_repo(args)
    # Two refs never touch the work tree, nothing to reconcile
    if repo.config["auto_update"] and not args.no_update and ref2 is None:
        reconcile(repo, args)
        if repo.ctx.store_dir.exists():
            repo.vcs.intend_to_add(repo.ctx.store_rel)

    raw = repo.vcs.diff(ref1, ref2, path=repo.ctx.store_rel)
    report = meta_diff(raw, full_tree=full_tree)

    if args.json:
        print_json(report.to_dict())
    elif get_verbosity(args) >= 1:
        page(report.lines, repo.config["pager"], enabled=not args.no_pager)
    return EXIT_DIFFERENCES if report.has_differences else EXIT_OK


def cmd_diff(args):
    return _run_diff(args, args.all, args.ref1, args.ref2)


def cmd_status(args):
    return _run_diff(args, True, "HEAD", None)


def cmd_ls(args):
    repo = open_repo(args)
    items = repo.store.items()
    if args.json:
        print_json([{"path": p, "record": r.to_line() if r else None} for p, r in items])
    else:
        for path, record in items:
            print(f"{record.to_line() if record else '?':<24} {path}")
    return EXIT_OK


# ── Parser ────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-meta",
        description="Track file permissions, owner and group in git",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ver = _gitmeta_pkg.__version__
    parser.add_argument("--version", "-V", action="version", version=f"gitmeta {ver}")
    parser.add_argument("--path", "-C", default=".", help="Repository path")
    parser.add_argument("--json", "-j", action="store_true", help="JSON output")
    parser.add_argument(
        "--no-update", action="store_true", help="Do not reconcile the store before diffing"
    )
    parser.add_argument("--no-pager", action="store_true", help="Never page output")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Quiet output")

    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("init", help="Install git hooks")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("commit", help="Record metadata and stage it (pre-commit hook)")
    p.set_defaults(func=cmd_commit)

    p = sub.add_parser("merge", help="Apply recorded metadata (post-merge hook)")
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("apply", help="Apply recorded metadata to the work tree")
    p.add_argument("--dry-run", "-n", action="store_true", help="Check without changing anything")
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("diff", help="Show metadata differences")
    p.add_argument(
        "--all", "-a", action="store_true", help="Also show paths that exist on one side only"
    )
    p.add_argument("ref1", nargs="?", default=None)
    p.add_argument("ref2", nargs="?", default=None)
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("status", help="Metadata differences against HEAD (diff -a HEAD)")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("ls", help="List recorded metadata")
    p.set_defaults(func=cmd_ls)

    return parser


def _error_hint(msg: str) -> str | None:
    """Return a hint for common error messages, or None."""
    lower = msg.lower()
    if "missing on disk" in lower:
        return "Hint: Run 'git-meta commit' to drop entries for deleted files."
    if "unknown user" in lower or "unknown group" in lower:
        return "Hint: Create the account, or re-record metadata with 'git-meta commit'."
    if "operation not permitted" in lower:
        return "Hint: Changing ownership usually requires root."
    if "unknown revision" in lower or "bad revision" in lower:
        return "Hint: Check the refs passed to 'git-meta diff'."
    return None


_KNOWN_COMMANDS = ["init", "commit", "merge", "apply", "diff", "status", "ls"]

COMMAND_ALIASES = {"st": "status"}


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Resolve command aliases before parsing
    if argv and argv[0] in COMMAND_ALIASES:
        argv[0] = COMMAND_ALIASES[argv[0]]

    # Check for "did you mean?" before argparse (which exits with code 2)
    if argv and not argv[0].startswith("-"):
        attempted = argv[0]
        all_names = _KNOWN_COMMANDS + list(COMMAND_ALIASES.keys())
        if attempted not in all_names:
            matches = difflib.get_close_matches(attempted, all_names, n=3, cutoff=0.6)
            if matches:
                print(f"Unknown command: '{attempted}'", file=sys.stderr)
                print(f"  Did you mean: {', '.join(matches)}?", file=sys.stderr)
                return EXIT_ERROR

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args)

    if not getattr(args, "func", None):
        parser.print_help(sys.stderr)
        return EXIT_ERROR

    try:
        return args.func(args)
    except NotARepository as e:
        if args.json:
            print_json({"error": str(e)})
        else:
            print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        msg = str(e)
        if args.json:
            print_json({"error": msg})
        else:
            print(f"Error: {msg}", file=sys.stderr)
            hint = _error_hint(msg)
            if hint:
                print(f"  {hint}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
