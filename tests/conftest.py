from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

# Keep the import-time storage root out of the project tree.
os.environ.setdefault("FILETRANS_FILES_ROOT", tempfile.mkdtemp(prefix="filetrans-tests-"))


@pytest.fixture
def root(tmp_path: Path) -> Path:
    storage = tmp_path / "FILES"
    storage.mkdir()
    return storage.resolve()


@pytest.fixture
def tree(root: Path) -> Path:
    """root/a/b.txt, root/a/c/d.txt, root/a/empty/, root/top.txt"""
    (root / "a" / "c").mkdir(parents=True)
    (root / "a" / "empty").mkdir()
    (root / "a" / "b.txt").write_bytes(b"bee")
    (root / "a" / "c" / "d.txt").write_bytes(b"dee" * 100)
    (root / "top.txt").write_bytes(b"top level")
    return root


@pytest.fixture
def undecodable_file():
    """Create folder/bad<0xff>.txt, a name that is not valid UTF-8 (allowed on Linux)."""

    def _make(folder: Path) -> None:
        with open(os.fsencode(str(folder)) + b"/bad\xff.txt", "wb") as fh:
            fh.write(b"raw")

    return _make
