from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from filetrans_backend.config import BATCH_ZIP_NAME, FILES_ROOT, HOST, PORT
from filetrans_backend.errors import AccessDenied, AlreadyExists, IOFailure, NotFound, StorageError
from filetrans_backend.logging_setup import setup_logging
from filetrans_backend.repository import FileRepository
from filetrans_backend.security import resolve_path
from filetrans_backend.uploads import UploadItem


BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"

log = setup_logging()


class CreateFolderRequest(BaseModel):
    path: Optional[str] = ""
    name: str


class DownloadRequest(BaseModel):
    paths: List[str]


def get_repository() -> FileRepository:
    return FileRepository(FILES_ROOT)


def _content_disposition_attachment(filename: str) -> str:
    # Plain ASCII fallback plus RFC 5987 form for non-ASCII names.
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


app = FastAPI()

# The front page may be opened from another host on the LAN; allow everything.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


_STATUS_BY_ERROR = (
    (AccessDenied, 403),
    (NotFound, 404),
    (AlreadyExists, 409),
    (IOFailure, 500),
)


@app.exception_handler(StorageError)
async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
    status = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    return JSONResponse({"detail": str(exc)}, status_code=status)


@app.get("/api/list")
async def list_files(path: Optional[str] = None, repo: FileRepository = Depends(get_repository)) -> JSONResponse:
    entries = await asyncio.to_thread(repo.list, path)
    return JSONResponse([e.to_dict() for e in entries])


@app.post("/api/upload")
async def upload(
    path: str = Form(""),
    files: List[UploadFile] = File(...),
    repo: FileRepository = Depends(get_repository),
) -> JSONResponse:
    """Store uploaded files under path; file names may carry sub-folders."""
    items = [UploadItem(f.filename or "", f.file, f.size) for f in files]
    written = await asyncio.to_thread(repo.ingest, path, items)
    return JSONResponse({"ok": True, "bytes": written})


@app.get("/api/download")
async def download(path: str, repo: FileRepository = Depends(get_repository)) -> Response:
    """Send a file as-is, or a folder as <name>.zip built on the fly."""
    full_path = resolve_path(repo.root, path)
    if full_path.is_file():
        return FileResponse(full_path, media_type="application/octet-stream", filename=full_path.name)
    if full_path.is_dir():
        chunks = repo.iter_archive(path)
        headers = {"Content-Disposition": _content_disposition_attachment(f"{full_path.name}.zip")}
        return StreamingResponse(chunks, media_type="application/zip", headers=headers)
    raise NotFound("Not found")


@app.post("/api/download-zip")
async def download_zip(payload: DownloadRequest, repo: FileRepository = Depends(get_repository)) -> Response:
    chunks = repo.iter_archive(payload.paths)
    headers = {"Content-Disposition": _content_disposition_attachment(BATCH_ZIP_NAME)}
    return StreamingResponse(chunks, media_type="application/zip", headers=headers)


@app.post("/api/create-folder")
async def create_folder(payload: CreateFolderRequest, repo: FileRepository = Depends(get_repository)) -> JSONResponse:
    await asyncio.to_thread(repo.create_folder, payload.path, payload.name)
    return JSONResponse({"ok": True})


@app.delete("/api/delete")
async def delete(path: str, repo: FileRepository = Depends(get_repository)) -> JSONResponse:
    # rmtree on a large folder must not stall other requests.
    await asyncio.to_thread(repo.delete, path)
    return JSONResponse({"ok": True})


# Static front page (http://localhost:9000/).
# Note: define API routes above, then mount static at '/'.
app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    log.warning("FileTrans is running on http://%s:%s (files in %s)", HOST, PORT, FILES_ROOT)
    uvicorn.run("server:app", host=HOST, port=int(os.environ.get("PORT", PORT)), reload=False)
