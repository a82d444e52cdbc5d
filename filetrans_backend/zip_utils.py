from __future__ import annotations

import logging
import os
import stat
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Protocol

from .config import ARCHIVE_CHUNK_BYTES
from .errors import IOFailure, NotFound
from .security import is_portable_name, relative_display, resolve_path


log = logging.getLogger(__name__)


class WritableSink(Protocol):
    def write(self, data: bytes) -> object: ...


class _SinkAdapter:
    """Gives a write-only sink the flush() that zipfile calls on close.

    Hiding tell/seek also keeps zipfile on the streaming path (data
    descriptors), so nothing is ever rewritten in place.
    """

    def __init__(self, sink: WritableSink) -> None:
        self._sink = sink

    def write(self, data) -> int:
        self._sink.write(data)
        return len(data)

    def flush(self) -> None:
        flush = getattr(self._sink, "flush", None)
        if flush is not None:
            flush()


@dataclass(frozen=True)
class ArchiveJob:
    path: Path  # resolved by resolve_path
    prefix: str = ""


def _arcname(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def plan_archive(root: Path, relative_paths: Iterable[str] | str) -> list[ArchiveJob]:
    """Resolve client paths into archive jobs.

    A single item gets an empty prefix. In a batch every item is prefixed with
    its parent folder (relative to root) so same-named items from different
    folders cannot collide. Repeated selections of one path are dropped.

    Raises AccessDenied/NotFound before anything is written.
    """
    if isinstance(relative_paths, str):
        relative_paths = [relative_paths]
    paths = list(relative_paths)
    if not paths:
        raise NotFound("Nothing to archive")

    root = root.resolve()
    single = len(paths) == 1
    jobs: list[ArchiveJob] = []
    seen: set[str] = set()
    for rel in paths:
        resolved = resolve_path(root, rel)
        if not (resolved.is_file() or resolved.is_dir()):
            raise NotFound("Not found")
        if not is_portable_name(relative_display(root, resolved)):
            # Undecodable bytes in the name; it cannot become a ZIP entry.
            raise NotFound("Not found")
        key = os.path.normcase(str(resolved))
        if key in seen:
            continue
        seen.add(key)
        if single or resolved == root:
            prefix = ""
        else:
            prefix = relative_display(root, resolved.parent)
        jobs.append(ArchiveJob(resolved, prefix))
    return jobs


def _iter_sources(job: ArchiveJob) -> Iterator[tuple[Path, str]]:
    """Yield (file, entry name) pairs for one job.

    Directories are walked depth-first with an explicit stack. Within a folder
    files come before subfolders, both in name order. Symlinks and special
    files are skipped, never followed. Empty folders produce nothing.
    """
    st = job.path.stat()
    base = _arcname(job.prefix, job.path.name)
    if stat.S_ISREG(st.st_mode):
        yield job.path, base
        return
    if not stat.S_ISDIR(st.st_mode):
        raise NotFound("Not found")

    stack: list[tuple[Path, str]] = [(job.path, base)]
    while stack:
        directory, entry_prefix = stack.pop()
        files: list[tuple[str, Path]] = []
        subdirs: list[tuple[str, Path]] = []
        with os.scandir(directory) as it:
            for child in it:
                if not is_portable_name(child.name):
                    log.warning("Skipping entry with undecodable name %r", child.name)
                    continue
                child_st = child.stat(follow_symlinks=False)
                if stat.S_ISREG(child_st.st_mode):
                    files.append((child.name, Path(child.path)))
                elif stat.S_ISDIR(child_st.st_mode):
                    subdirs.append((child.name, Path(child.path)))
                else:
                    log.debug("Skipping non-regular entry %r", _arcname(entry_prefix, child.name))
        files.sort()
        subdirs.sort()

        for name, path in files:
            yield path, _arcname(entry_prefix, name)
        # Reversed so the first subfolder is popped next.
        for name, path in reversed(subdirs):
            stack.append((path, _arcname(entry_prefix, name)))


def _write_archive(jobs: Iterable[ArchiveJob], sink: WritableSink, chunk_size: int) -> Iterator[None]:
    # Yields after every chunk handed to the zip writer so a caller can drain
    # the sink between reads.
    with zipfile.ZipFile(_SinkAdapter(sink), mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for job in jobs:
            for source, arcname in _iter_sources(job):
                if arcname in zf.NameToInfo:
                    log.debug("Skipping duplicate archive entry %r", arcname)
                    continue
                zinfo = zipfile.ZipInfo.from_file(source, arcname, strict_timestamps=False)
                zinfo.compress_type = zipfile.ZIP_DEFLATED
                with open(source, "rb") as src, zf.open(zinfo, mode="w") as dest:
                    while True:
                        chunk = src.read(chunk_size)
                        if not chunk:
                            break
                        dest.write(chunk)
                        yield


def stream_archive(jobs: Iterable[ArchiveJob], sink: WritableSink, chunk_size: int = ARCHIVE_CHUNK_BYTES) -> None:
    """Write a ZIP of all jobs to sink, entry by entry.

    The sink only needs a ``write`` method; ``flush`` is called if present
    and seeking is never used.
    At most one chunk of one source file is held in memory at a time.

    Any read or write error aborts with IOFailure. Bytes already written to the
    sink are not taken back, so the partial output is not a valid archive.
    """
    try:
        for _ in _write_archive(jobs, sink, chunk_size):
            pass
    except (OSError, UnicodeError) as exc:
        log.error("Archive streaming failed: %s", getattr(exc, "strerror", None) or exc)
        raise IOFailure("Archive streaming failed") from exc


class _ChunkSink:
    """Write target that hands accumulated bytes back on drain()."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def iter_archive(jobs: Iterable[ArchiveJob], chunk_size: int = ARCHIVE_CHUNK_BYTES) -> Iterator[bytes]:
    """Produce the same archive as stream_archive as a sequence of byte chunks.

    Meant for streaming responses: the consumer pulls one chunk at a time, and
    closing the iterator early closes any open source file.
    """
    sink = _ChunkSink()
    try:
        for _ in _write_archive(jobs, sink, chunk_size):
            data = sink.drain()
            if data:
                yield data
    except (OSError, UnicodeError) as exc:
        log.error("Archive streaming failed: %s", getattr(exc, "strerror", None) or exc)
        raise IOFailure("Archive streaming failed") from exc
    data = sink.drain()
    if data:
        yield data
