"""
gitsnap: turn a repository's working tree into one LLM-readable text file.

Overview
--------
Every relevant text file of the tree is concatenated into a single artifact,
each one preceded by a banner with its relative path and size:

    ================================================================================
    File: src/app.py
    Size: 1.50 KB
    ================================================================================

Binary files, files above the size threshold and the `.git` / `node_modules`
directories are left out unless `--include-all` is given (the name-based
exclusions always apply).

The repository is either a local directory, snapshotted in place, or a GitHub
reference (`user/repo`, `https://github.com/user/repo`, `git@github.com:user/repo`)
shallow-cloned into a temporary directory that is removed afterwards.

Usage
-----
    gitsnap user/repo
    gitsnap https://github.com/user/repo -o snapshot.txt -t 0.5
    gitsnap ./my-project --include-all --debug --log-file gitsnap.log
"""

from __future__ import annotations

import argparse
import sys
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

from gitsnap import __version__
from gitsnap.exceptions import GitsnapError
from gitsnap.logging import setup_logging
from gitsnap.output_construction import partial_path, write_snapshot
from gitsnap.repository import clone_repository, is_local_repository, normalize_github_url, repo_name_from_url
from gitsnap.settings import ENV_LOG_FILE, ENV_THRESHOLD, ENV_WORKERS, Settings, env_default, load_env_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gitsnap.accounting import RunStats

logger = setup_logging()


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser; defaults come from the environment."""
    p = argparse.ArgumentParser(
        prog="gitsnap",
        description="Convert a repository into a single readable text file.",
    )
    p.add_argument(
        "repository",
        type=str,
        help="GitHub repository URL, user/repo shorthand, or local directory.",
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file path (defaults to <repo_name>.txt).",
    )
    p.add_argument(
        "-t",
        "--threshold",
        type=float,
        default=env_default(ENV_THRESHOLD, "0.1"),
        metavar="MB",
        help="File size threshold in MB; larger files are skipped unless --include-all.",
    )
    p.add_argument(
        "--include-all",
        action="store_true",
        help="Include all files regardless of size or type.",
    )
    p.add_argument("--debug", action="store_true", help="Enable verbose logging.")
    p.add_argument(
        "--workers",
        type=int,
        default=env_default(ENV_WORKERS, "0"),
        help="Worker threads (0 = one per CPU, 1 = sequential).",
    )
    p.add_argument(
        "--log-file",
        type=str,
        default=env_default(ENV_LOG_FILE, ""),
        help="Log file path.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command-line arguments into settings.

    Args:
        argv (Sequence[str] | None): arguments, `sys.argv[1:]` when None

    Returns:
        Settings: the validated settings
    """
    load_env_file()
    args = build_parser().parse_args(argv)
    return Settings(**vars(args))


def snapshot_directory(settings: Settings, root: Path, output: Path) -> RunStats:
    """Snapshot an already-materialized tree into `output`.

    When `output` lives inside `root`, it and its in-progress sibling are
    excluded so the artifact never includes itself.

    Args:
        settings (Settings): the command-line settings
        root (Path): the tree to snapshot
        output (Path): the artifact path

    Returns:
        RunStats: the run counters
    """
    root = root.resolve()
    output = output.resolve()
    excluded = frozenset({output, partial_path(output)}) if output.is_relative_to(root) else frozenset()
    config = settings.run_config(root, excluded_paths=excluded)

    start = time.perf_counter()
    stats = write_snapshot(config, output)
    logger.debug("File processing took %.2fs", time.perf_counter() - start)
    return stats


def run(settings: Settings) -> Path:
    """Obtain the repository, snapshot it and return the artifact path.

    Args:
        settings (Settings): the command-line settings

    Returns:
        Path: the written artifact
    """
    if is_local_repository(settings.repository):
        root = Path(settings.repository).expanduser().resolve()
        output = settings.output_path(root.name)
        snapshot_directory(settings, root, output)
        return output

    url = normalize_github_url(settings.repository)
    logger.debug("Normalized URL: %s", url)
    output = settings.output_path(repo_name_from_url(url))

    with tempfile.TemporaryDirectory(prefix="gitsnap-") as tmp:
        start = time.perf_counter()
        clone_repository(url, Path(tmp))
        logger.debug("Repository download took %.2fs", time.perf_counter() - start)
        snapshot_directory(settings, Path(tmp), output)
        logger.debug("Cleaning up temp dir %s", tmp)
    return output


def main(argv: Sequence[str] | None = None) -> int:
    """Run the gitsnap command line.

    Args:
        argv (Sequence[str] | None): optional CLI arguments

    Returns:
        int: process exit code, 1 on any gitsnap error
    """
    settings = parse_args(argv)
    setup_logging(settings.log_file or None, debug=settings.debug)
    logger.debug("Debug mode enabled")

    try:
        output = run(settings)
    except GitsnapError as e:
        logger.error("Error: %s", e, error_type=type(e).__name__)
        return 1

    print(f"Output saved to: {output}")  # noqa: T201
    return 0


if __name__ == "__main__":
    sys.exit(main())
