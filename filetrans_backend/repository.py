from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from .security import resolve_entry, resolve_path
from .storage import Entry, create_folder, delete_path, list_entries
from .uploads import UploadItem, ingest
from .zip_utils import ArchiveJob, WritableSink, iter_archive, plan_archive, stream_archive


@dataclass(frozen=True)
class FileRepository:
    """The operations offered to the transport layer.

    Every argument is untrusted client input and goes through resolve_path
    first. The root is fixed at construction; pass any directory in tests.
    """

    root: Path

    def list(self, relative_path: str | None = "") -> list[Entry]:
        return list_entries(resolve_path(self.root, relative_path))

    def plan_archive(self, relative_paths: Iterable[str] | str) -> list[ArchiveJob]:
        return plan_archive(self.root, relative_paths)

    def stream_archive(self, relative_paths: Iterable[str] | str, sink: WritableSink) -> None:
        stream_archive(self.plan_archive(relative_paths), sink)

    def iter_archive(self, relative_paths: Iterable[str] | str) -> Iterator[bytes]:
        # Planning happens here, eagerly, so failures surface before the first chunk.
        return iter_archive(self.plan_archive(relative_paths))

    def ingest(self, target_relative_path: str | None, items: Iterable[UploadItem]) -> int:
        return ingest(resolve_path(self.root, target_relative_path), items)

    def create_folder(self, parent_relative_path: str | None, name: str) -> Path:
        return create_folder(resolve_path(self.root, parent_relative_path), name)

    def delete(self, relative_path: str | None) -> None:
        # A symlink is removed itself, not the folder or file it points to.
        delete_path(self.root, resolve_entry(self.root, relative_path))
