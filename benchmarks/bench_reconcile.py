"""
Benchmark: Reconciliation Performance

Measures build_tree timing across different scenarios:
1. Initial reconciliation (every path new)
2. No-change reconciliation (every record already current)
3. Small-change reconciliation (few modes changed)

Usage:
    python -m benchmarks.bench_reconcile --files 10000 --dirs 100 --rounds 3
"""

import argparse
import json
import os
import random
import shutil
import sys
import tempfile
import time
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gitmeta.repo import MetaContext
from gitmeta.store import MetadataStore
from gitmeta.tree import build_tree


class StaticListing:
    """Serves a fixed file list in place of git."""

    def __init__(self, files):
        self.files = files

    def list_tracked_files(self):
        return self.files

    def remove_path(self, path):
        pass


def generate_files(root: Path, num_files: int, num_dirs: int) -> list[str]:
    """Generate N files spread across D directories; return relative names."""
    dirs = [Path(".")]
    for i in range(num_dirs):
        d = Path(f"dir_{i:04d}")
        (root / d).mkdir(parents=True, exist_ok=True)
        dirs.append(d)

    names = []
    for i in range(num_files):
        rel = dirs[i % len(dirs)] / f"file_{i:06d}.txt"
        (root / rel).write_text(f"file-{i}\n")
        names.append(rel.as_posix())
    return names


def run_benchmark(num_files: int, num_dirs: int, rounds: int):
    tmpdir = Path(tempfile.mkdtemp(prefix="gitmeta_bench_"))
    try:
        print(f"Generating {num_files} files across {num_dirs} directories...")
        names = generate_files(tmpdir, num_files, num_dirs)
        ctx = MetaContext(root=tmpdir)
        vcs = StaticListing(names)
        store = MetadataStore(ctx.store_dir, ctx.store_rel, vcs)

        results = {}

        start = time.perf_counter()
        first = build_tree(ctx, vcs, store)
        results["initial"] = time.perf_counter() - start
        print(f"  initial:   {results['initial']:.3f}s ({len(first.changed)} entries)")

        timings = []
        for _ in range(rounds):
            start = time.perf_counter()
            build_tree(ctx, vcs, store)
            timings.append(time.perf_counter() - start)
        results["no_change"] = min(timings)
        print(f"  no-change: {results['no_change']:.3f}s (best of {rounds})")

        timings = []
        for _ in range(rounds):
            for name in random.sample(names, min(10, len(names))):
                os.chmod(tmpdir / name, random.choice([0o600, 0o640, 0o644, 0o755]))
            start = time.perf_counter()
            build_tree(ctx, vcs, store)
            timings.append(time.perf_counter() - start)
        results["small_change"] = min(timings)
        print(f"  small:     {results['small_change']:.3f}s (best of {rounds})")

        return results
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


def main():
    parser = argparse.ArgumentParser(description="Benchmark gitmeta reconciliation")
    parser.add_argument("--files", type=int, default=5000)
    parser.add_argument("--dirs", type=int, default=50)
    parser.add_argument("--rounds", type=int, default=3)
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    args = parser.parse_args()

    results = run_benchmark(args.files, args.dirs, args.rounds)
    if args.json:
        print(json.dumps(results, indent=2))


if __name__ == "__main__":
    main()
