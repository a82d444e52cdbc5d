from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable

from .config import ARCHIVE_CHUNK_BYTES
from .errors import AccessDenied, IOFailure
from .security import safe_join, sanitize_upload_name


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadItem:
    name: str  # untrusted; may contain "/" or "\\"
    content: BinaryIO
    length: int | None = None  # declared size, when the transport knows it


def ingest(target_dir: Path, items: Iterable[UploadItem], chunk_size: int = ARCHIVE_CHUNK_BYTES) -> int:
    """Write uploaded items under target_dir and return the total bytes written.

    Rules:
    - Names are normalized to relative posix paths; any ".." segment skips the item
    - The joined destination must still resolve inside target_dir, else skipped
    - Intermediate directories are created; existing files are overwritten

    Skipped items do not fail the batch. An I/O error aborts the remaining
    items with IOFailure; files already written are kept.
    """
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error("Upload target not creatable: %s", exc.strerror or exc)
        raise IOFailure("Could not create upload directory") from exc

    written = 0
    for item in items:
        rel = sanitize_upload_name(item.name)
        if rel is None:
            log.warning("Skipping upload with unsafe name: %r", item.name)
            continue
        try:
            dest = safe_join(target_dir, rel)
        except AccessDenied:
            log.warning("Skipping upload escaping target directory: %r", item.name)
            continue
        if dest == target_dir.resolve() or dest.is_dir():
            log.warning("Skipping upload that names a directory: %r", item.name)
            continue

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as out:
                shutil.copyfileobj(item.content, out, chunk_size)
                size = out.tell()
            written += size
        except OSError as exc:
            log.error("Upload of %r failed: %s", rel, exc.strerror or exc)
            raise IOFailure("Could not write uploaded file") from exc
        if item.length is not None and item.length != size:
            log.warning("Upload %r declared %d bytes but delivered %d", rel, item.length, size)
        log.info("Stored upload %r", rel)
    return written
