from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from gitsnap.config import BINARY_SNIFF_BYTES, SIZE_UNITS, Decision, Entry, Reason
from gitsnap.exceptions import RootDirectoryError
from gitsnap.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterator

    from gitsnap.config import RunConfig


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def format_size(size: int) -> str:
    """Render a byte count with two decimals in the largest fitting unit.

    Units are `bytes`, `KB`, `MB`, `GB` and `TB` (powers of 1024); anything
    beyond TB stays in TB.

    Args:
        size (int): the number of bytes

    Returns:
        str: e.g. "0.00 bytes", "1.50 KB", "1.00 MB"
    """
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:  # noqa: PLR2004
        value /= 1024
        unit += 1
    return f"{value:.2f} {SIZE_UNITS[unit]}"


def looks_binary(path: Path, nbytes: int = BINARY_SNIFF_BYTES) -> bool:
    """Check if a file looks binary.

    Only the first `nbytes` bytes are read. An empty file is text; otherwise
    any NUL byte in the prefix marks the file binary. Binary formats without a
    NUL in the prefix pass as text, and UTF-16 text is reported binary.

    Args:
        path (Path): the file path to check
        nbytes (int, optional): size of the inspected prefix. Defaults to 8 KiB.

    Returns:
        bool: True if the prefix contains a NUL byte, False otherwise
    """
    with path.open("rb") as f:
        chunk = f.read(nbytes)
    if not chunk:
        return False
    return b"\x00" in chunk


def is_excluded_name(entry: Entry, config: RunConfig) -> bool:
    """Check the name-based exclusion rules for an entry.

    Args:
        entry (Entry): the entry to check
        config (RunConfig): the run configuration

    Returns:
        bool: True if the entry's name, one of its path components, or its
            absolute path is excluded
    """
    if entry.name in config.excluded_file_names or entry.name in config.excluded_dir_names:
        return True
    if any(part in config.excluded_dir_names for part in entry.rel.split("/")):
        return True
    return entry.path in config.excluded_paths


def classify(entry: Entry, config: RunConfig) -> Decision:
    """Decide whether an entry belongs in the snapshot.

    Rules are evaluated in order, first match wins:
    1) excluded name, path component or path -> `EXCLUDED_NAME`;
    2) include-all mode -> include;
    3) directories -> include (eligible for descent, never a record);
    4) size strictly above the threshold -> `TOO_LARGE`;
    5) binary prefix -> `BINARY`;
    6) include.

    Args:
        entry (Entry): the entry to classify
        config (RunConfig): the run configuration

    Raises:
        OSError: if the prefix read of rule 5 fails

    Returns:
        Decision: the include flag and the rejection reason
    """
    if is_excluded_name(entry, config):
        return Decision.reject(Reason.EXCLUDED_NAME)
    if config.include_all or entry.is_dir:
        return Decision.accept()
    if entry.size is not None and entry.size > config.threshold_bytes:
        return Decision.reject(Reason.TOO_LARGE)
    if looks_binary(entry.path):
        return Decision.reject(Reason.BINARY)
    return Decision.accept()


def _file_size(dir_entry: os.DirEntry[str]) -> int | None:
    try:
        return dir_entry.stat().st_size
    except OSError as e:
        logger.warning("Cannot read metadata of %s: %s", dir_entry.path, e)
        return None


def walk_tree(
    root: Path,
    excluded_dir_names: Collection[str] = frozenset(),
    *,
    descend: Callable[[Entry], bool] | None = None,
) -> Iterator[Entry]:
    """Lazily enumerate every directory and regular file under `root`.

    Pending directories live on an explicit stack. Every directory is yielded,
    but it is listed only when its name is not in `excluded_dir_names` and
    `descend` (when given) accepts it, so nothing inside a pruned directory is
    ever enumerated. `descend` is called once per directory, after the entry
    has been yielded. Sibling order is whatever the filesystem returns.

    Symlinked directories are followed; a symlink cycle makes the walk loop.

    Args:
        root (Path): the directory to walk
        excluded_dir_names (Collection[str]): directory names not to descend into
        descend (Callable[[Entry], bool] | None): decides whether a directory
            entry is listed. Defaults to descending into every directory.

    Raises:
        RootDirectoryError: if `root` itself cannot be listed

    Yields:
        Iterator[Entry]: one entry per directory or regular file
    """
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                children = list(it)
        except OSError as e:
            if current == root:
                raise RootDirectoryError(folder=root, reason=str(e)) from e
            logger.warning("Skipping unreadable directory %s: %s", relpath(current, root), e)
            continue

        for child in children:
            path = Path(child.path)
            try:
                is_dir = child.is_dir()
                is_file = not is_dir and child.is_file()
            except OSError as e:
                logger.warning("Cannot inspect %s: %s", path, e)
                continue
            if is_dir:
                entry = Entry(path=path, rel=relpath(path, root), is_dir=True)
                yield entry
                keep = descend(entry) if descend is not None else True
                if keep and child.name not in excluded_dir_names:
                    stack.append(path)
            elif is_file:
                yield Entry(path=path, rel=relpath(path, root), size=_file_size(child))
            else:
                logger.debug("Ignoring special file %s", relpath(path, root))
