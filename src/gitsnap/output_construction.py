from __future__ import annotations

import codecs
import io
import os
import tempfile
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, as_completed, wait
from typing import IO, TYPE_CHECKING

from gitsnap.accounting import RunStats
from gitsnap.config import CHUNK_BYTES, SPOOL_MAX_BYTES, UNREADABLE, Reason
from gitsnap.exceptions import OutputSinkError, RecordContentError
from gitsnap.file_manipulation import classify, format_size, walk_tree
from gitsnap.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator
    from concurrent.futures import Future
    from pathlib import Path

    from gitsnap.config import Decision, Entry, RunConfig

SEPARATOR = "=" * 80
RECORD_TRAILER = b"\n"
PENDING_PER_WORKER = 2


def format_banner(rel: str, size: int) -> str:
    """Build the banner that precedes a file's content in the artifact.

    Args:
        rel (str): the file path relative to the run root
        size (int): the content size in bytes

    Returns:
        str: the banner, ending with a blank line
    """
    return f"\n{SEPARATOR}\nFile: {rel}\nSize: {format_size(size)}\n{SEPARATOR}\n\n"


def spool_content(path: Path, *, verify_text: bool) -> tuple[IO[bytes], int]:
    """Copy a file into a spooled temporary buffer, chunk by chunk.

    The buffer stays in memory up to `SPOOL_MAX_BYTES` and rolls over to disk
    beyond that. The returned buffer is rewound; the caller closes it.

    Args:
        path (Path): the file to read
        verify_text (bool): decode the content as UTF-8 while copying

    Raises:
        OSError: if the file cannot be opened or read
        UnicodeDecodeError: if `verify_text` is set and the content is not UTF-8

    Returns:
        tuple[IO[bytes], int]: the rewound buffer and the number of bytes read
    """
    spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)  # noqa: SIM115
    decoder = codecs.getincrementaldecoder("utf-8")() if verify_text else None
    total = 0
    try:
        with path.open("rb") as f:
            for blk in iter(lambda: f.read(CHUNK_BYTES), b""):
                if decoder is not None:
                    decoder.decode(blk)
                spool.write(blk)
                total += len(blk)
        if decoder is not None:
            decoder.decode(b"", final=True)
    except BaseException:
        spool.close()
        raise
    spool.seek(0)
    return spool, total


class RecordWriter:
    """Serialize record appends to a shared binary sink.

    A record (banner, content, trailer) is written while holding one lock, so
    two records never interleave. Cross-record order is whatever order the
    workers reach the lock.
    """

    def __init__(self, sink: IO[bytes]) -> None:
        self._sink = sink
        self._lock = threading.Lock()
        self.records = 0

    def append(self, rel: str, size: int, content: IO[bytes]) -> None:
        """Write one complete record.

        Args:
            rel (str): the file path relative to the run root
            size (int): the content size shown in the banner
            content (IO[bytes]): readable content, consumed to the end

        Raises:
            OutputSinkError: if the sink rejects the write
            RecordContentError: if `content` cannot be read back
        """
        banner = format_banner(rel, size).encode("utf-8")
        with self._lock:
            self._write(banner)
            while True:
                try:
                    blk = content.read(CHUNK_BYTES)
                except OSError as e:
                    raise RecordContentError(path=rel, reason=str(e)) from e
                if not blk:
                    break
                self._write(blk)
            self._write(RECORD_TRAILER)
            self.records += 1

    def _write(self, data: bytes) -> None:
        try:
            self._sink.write(data)
        except OSError as e:
            raise OutputSinkError(target=repr(self._sink), reason=str(e)) from e


_REJECTION_EVENTS: dict[Reason, str] = {
    Reason.EXCLUDED_NAME: "Skipping excluded path: %s",
    Reason.TOO_LARGE: "Skipping large file: %s",
    Reason.BINARY: "Skipping binary file: %s",
}


def _log_rejection(entry: Entry, decision: Decision) -> None:
    logger.debug(_REJECTION_EVENTS[decision.reason], entry.rel, reason=str(decision.reason))


def process_entry(entry: Entry, config: RunConfig, writer: RecordWriter, stats: RunStats) -> bool:
    """Classify one file entry and append its record when it is included.

    Per-file failures (metadata, open, read, non-UTF-8 content outside
    include-all mode) are logged and counted as skipped.

    Args:
        entry (Entry): a file entry from the walk
        config (RunConfig): the run configuration
        writer (RecordWriter): the shared record writer
        stats (RunStats): the shared run counters

    Raises:
        OutputSinkError: if the record cannot be written to the sink
        RecordContentError: if the buffered content cannot be read back

    Returns:
        bool: True if a record was written, False otherwise
    """
    try:
        if entry.size is None:
            msg = "metadata unavailable"
            raise FileNotFoundError(msg)
        decision = classify(entry, config)
        if not decision.include:
            _log_rejection(entry, decision)
            stats.record_skipped(decision.reason)
            return False
        spool, size = spool_content(entry.path, verify_text=not config.include_all)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Skipping unreadable file %s: %s", entry.rel, e)
        stats.record_skipped(UNREADABLE)
        return False

    with spool:
        writer.append(entry.rel, size, spool)
    stats.record_processed()
    logger.debug("Processed file: %s", entry.rel, size=format_size(size))
    return True


def iter_candidate_files(config: RunConfig, stats: RunStats) -> Iterator[Entry]:
    """Walk the tree and yield the file entries left to classify.

    Directories are classified here and the walk only descends into the
    included ones: rejected directories are counted and logged once and their
    contents are never listed, traversed ones are not counted.

    Args:
        config (RunConfig): the run configuration
        stats (RunStats): the run counters

    Yields:
        Iterator[Entry]: file entries in walk order
    """

    def descend(entry: Entry) -> bool:
        decision = classify(entry, config)
        if not decision.include:
            _log_rejection(entry, decision)
            stats.record_skipped(decision.reason)
        return decision.include

    for entry in walk_tree(config.root_dir, config.excluded_dir_names, descend=descend):
        if not entry.is_dir:
            yield entry


def resolve_workers(workers: int) -> int:
    """Resolve a configured worker count (0 means one per CPU)."""
    if workers > 0:
        return workers
    return os.cpu_count() or 1


def build_snapshot(config: RunConfig, sink: IO[bytes]) -> RunStats:
    """Stream every included file of `config.root_dir` into `sink`.

    The walk runs on the calling thread; file entries are classified, read
    and appended by a thread pool of `config.workers` threads (sequentially
    when it resolves to 1). At most `PENDING_PER_WORKER` entries per worker
    are in flight; the first fatal error cancels every entry not yet started.

    Args:
        config (RunConfig): the run configuration
        sink (IO[bytes]): a writable binary stream

    Raises:
        RootDirectoryError: if the root directory cannot be listed
        OutputSinkError: if the sink rejects a write
        RecordContentError: if buffered content cannot be read back

    Returns:
        RunStats: the finished run counters
    """
    stats = RunStats()
    writer = RecordWriter(sink)
    workers = resolve_workers(config.workers)
    logger.debug("Snapshotting %s", config.root_dir, workers=workers, include_all=config.include_all)

    if workers == 1:
        for entry in iter_candidate_files(config, stats):
            process_entry(entry, config, writer, stats)
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            pending: set[Future[bool]] = set()
            try:
                for entry in iter_candidate_files(config, stats):
                    if len(pending) >= workers * PENDING_PER_WORKER:
                        done, pending = wait(pending, return_when=FIRST_COMPLETED)
                        for future in done:
                            future.result()
                    pending.add(pool.submit(process_entry, entry, config, writer, stats))
                for future in as_completed(pending):
                    future.result()
            except BaseException:
                pool.shutdown(wait=True, cancel_futures=True)
                raise

    stats.finish()
    stats.report(debug=config.debug)
    return stats


def snapshot_bytes(config: RunConfig) -> tuple[bytes, RunStats]:
    """Build the whole artifact in memory.

    Args:
        config (RunConfig): the run configuration

    Returns:
        tuple[bytes, RunStats]: the artifact and the run counters
    """
    buf = io.BytesIO()
    stats = build_snapshot(config, buf)
    return buf.getvalue(), stats


def write_snapshot(config: RunConfig, output: Path) -> RunStats:
    """Write the artifact to `output`, replacing it only once complete.

    Content goes to `<output>.part` first and is renamed over `output` on
    success; the partial file is removed if the run fails.

    Args:
        config (RunConfig): the run configuration
        output (Path): the artifact path

    Raises:
        OutputSinkError: if the artifact cannot be created, written or moved
        RootDirectoryError: if the root directory cannot be listed

    Returns:
        RunStats: the run counters
    """
    part = partial_path(output)
    try:
        sink = part.open("wb")
    except OSError as e:
        raise OutputSinkError(target=str(output), reason=str(e)) from e

    try:
        with sink:
            stats = build_snapshot(config, sink)
        part.replace(output)
    except OSError as e:
        part.unlink(missing_ok=True)
        raise OutputSinkError(target=str(output), reason=str(e)) from e
    except BaseException:
        part.unlink(missing_ok=True)
        raise
    return stats


def partial_path(output: Path) -> Path:
    """Path of the in-progress artifact for `output`."""
    return output.with_name(output.name + ".part")
