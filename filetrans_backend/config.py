from __future__ import annotations

import os
from pathlib import Path


# Root directory for all stored files.
# Default: project-local ./FILES. Override with env var FILETRANS_FILES_ROOT.
_root_raw = os.environ.get("FILETRANS_FILES_ROOT")
if _root_raw and _root_raw.strip():
    FILES_ROOT = Path(_root_raw)
else:
    # filetrans_backend/ -> project root
    FILES_ROOT = Path(__file__).resolve().parent.parent / "FILES"
FILES_ROOT = FILES_ROOT.resolve()
FILES_ROOT.mkdir(parents=True, exist_ok=True)

# Listen on all interfaces so other machines on the LAN can reach the server.
HOST = os.environ.get("FILETRANS_HOST", "0.0.0.0")
PORT = int(os.environ.get("FILETRANS_PORT", "9000"))

LOG_LEVEL = os.environ.get("FILETRANS_LOG_LEVEL", "WARNING")

# Read size for archive and upload copies; bounds per-request memory.
ARCHIVE_CHUNK_BYTES = int(os.environ.get("FILETRANS_ARCHIVE_CHUNK_BYTES", str(64 * 1024)))  # 64KB

BATCH_ZIP_NAME = "batch_download.zip"
