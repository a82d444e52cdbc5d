from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .errors import AccessDenied, AlreadyExists, IOFailure, NotFound
from .security import is_portable_name, safe_join


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entry:
    name: str
    is_directory: bool
    size: int | None
    last_modified: datetime

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "isDirectory": self.is_directory,
            "size": self.size,
            "lastModified": self.last_modified.isoformat(),
        }


def _mtime(st: os.stat_result) -> datetime:
    return datetime.fromtimestamp(st.st_mtime).astimezone()


def list_entries(directory: Path) -> list[Entry]:
    """List the immediate children of a resolved directory.

    Directories come first, then files, each sorted by name. Symlinks and
    special files are not reported.
    """
    if not directory.is_dir():
        raise NotFound("Directory not found")

    dirs: list[Entry] = []
    files: list[Entry] = []
    try:
        with os.scandir(directory) as it:
            for child in it:
                if not is_portable_name(child.name):
                    log.warning("Skipping entry with undecodable name %r", child.name)
                    continue
                try:
                    st = child.stat(follow_symlinks=False)
                except FileNotFoundError:
                    # Removed between enumeration and stat.
                    continue
                if stat.S_ISDIR(st.st_mode):
                    dirs.append(Entry(child.name, True, None, _mtime(st)))
                elif stat.S_ISREG(st.st_mode):
                    files.append(Entry(child.name, False, st.st_size, _mtime(st)))
                else:
                    log.debug("Skipping non-regular entry %r in listing", child.name)
    except FileNotFoundError:
        raise NotFound("Directory not found")
    except OSError as exc:
        log.error("Listing failed: %s", exc.strerror or exc)
        raise IOFailure("Could not list directory") from exc

    dirs.sort(key=lambda e: e.name)
    files.sort(key=lambda e: e.name)
    return dirs + files


def create_folder(parent: Path, name: str) -> Path:
    """Create parent/name (with any missing intermediate directories)."""
    if not isinstance(name, str):
        raise AccessDenied("Invalid folder name")
    target = safe_join(parent, name.replace("\\", "/").lstrip("/\\"))
    if target.exists():
        raise AlreadyExists("Folder already exists")
    try:
        target.mkdir(parents=True)
    except FileExistsError:
        # Lost a race with a concurrent create.
        raise AlreadyExists("Folder already exists")
    except OSError as exc:
        log.error("Create folder failed: %s", exc.strerror or exc)
        raise IOFailure("Could not create folder") from exc
    log.info("Created folder %r", target.name)
    return target


def delete_path(root: Path, target: Path) -> None:
    """Remove a file, or a directory with all its contents. Irreversible.

    A symlink target (from resolve_entry) removes the link only, never what
    it points to.
    """
    if not target.is_symlink() and os.path.normcase(str(target.resolve())) == os.path.normcase(str(root.resolve())):
        raise AccessDenied("Refusing to delete the storage root")

    try:
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.is_dir():
            shutil.rmtree(target)
        else:
            raise NotFound("Not found")
    except FileNotFoundError:
        raise NotFound("Not found")
    except OSError as exc:
        log.error("Delete failed: %s", exc.strerror or exc)
        raise IOFailure("Could not delete") from exc
    log.info("Deleted %r", target.name)
