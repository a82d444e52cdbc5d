"""HTTP-level tests for the FastAPI routes."""

from __future__ import annotations

import io
import sys
import time
import zipfile

import anyio
import httpx
import pytest
from fastapi.testclient import TestClient

import server
from filetrans_backend.repository import FileRepository


@pytest.fixture
def client(tree):
    server.app.dependency_overrides[server.get_repository] = lambda: FileRepository(tree)
    try:
        yield TestClient(server.app)
    finally:
        server.app.dependency_overrides.clear()


def test_list_root(client):
    resp = client.get("/api/list")
    assert resp.status_code == 200
    items = resp.json()
    assert [i["name"] for i in items] == ["a", "top.txt"]
    folder, top = items
    assert folder["isDirectory"] is True and folder["size"] is None
    assert top["isDirectory"] is False and top["size"] == len(b"top level")
    assert "lastModified" in top


def test_list_subfolder_and_errors(client):
    assert [i["name"] for i in client.get("/api/list", params={"path": "a"}).json()] == ["c", "empty", "b.txt"]
    assert client.get("/api/list", params={"path": "nope"}).status_code == 404
    assert client.get("/api/list", params={"path": "../"}).status_code == 403


def test_upload_nested_files(client, tree):
    files = [
        ("files", ("photos/cat.jpg", b"meow", "image/jpeg")),
        ("files", ("notes.txt", b"hi", "text/plain")),
    ]
    resp = client.post("/api/upload", data={"path": "a/inbox"}, files=files)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "bytes": 6}
    assert (tree / "a" / "inbox" / "photos" / "cat.jpg").read_bytes() == b"meow"
    assert (tree / "a" / "inbox" / "notes.txt").read_bytes() == b"hi"


def test_upload_outside_root_is_forbidden(client):
    files = [("files", ("x.txt", b"x", "text/plain"))]
    resp = client.post("/api/upload", data={"path": "../../tmp"}, files=files)
    assert resp.status_code == 403


def test_download_file(client):
    resp = client.get("/api/download", params={"path": "a/b.txt"})
    assert resp.status_code == 200
    assert resp.content == b"bee"
    assert "b.txt" in resp.headers["content-disposition"]


def test_download_folder_as_zip(client):
    resp = client.get("/api/download", params={"path": "a"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/zip"
    assert 'filename="a.zip"' in resp.headers["content-disposition"]
    zf = zipfile.ZipFile(io.BytesIO(resp.content))
    assert zf.namelist() == ["a/b.txt", "a/c/d.txt"]


def test_download_errors(client):
    assert client.get("/api/download", params={"path": "missing"}).status_code == 404
    assert client.get("/api/download", params={"path": "../../etc/passwd"}).status_code == 403


def test_batch_download(client):
    resp = client.post("/api/download-zip", json={"paths": ["top.txt", "a/c"]})
    assert resp.status_code == 200
    assert "batch_download.zip" in resp.headers["content-disposition"]
    zf = zipfile.ZipFile(io.BytesIO(resp.content))
    assert zf.namelist() == ["top.txt", "a/c/d.txt"]


def test_batch_download_missing_item_fails_before_streaming(client):
    resp = client.post("/api/download-zip", json={"paths": ["top.txt", "gone.txt"]})
    assert resp.status_code == 404


def test_create_folder_then_conflict(client, tree):
    resp = client.post("/api/create-folder", json={"path": "a", "name": "new"})
    assert resp.status_code == 200
    assert (tree / "a" / "new").is_dir()
    resp = client.post("/api/create-folder", json={"path": "a", "name": "new"})
    assert resp.status_code == 409


def test_delete(client, tree):
    assert client.delete("/api/delete", params={"path": "a/c"}).status_code == 200
    assert not (tree / "a" / "c").exists()
    assert client.delete("/api/delete", params={"path": "a/c"}).status_code == 404
    assert client.delete("/api/delete", params={"path": ""}).status_code == 403
    assert client.delete("/api/delete", params={"path": "../x"}).status_code == 403


def test_front_page_is_served(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "FileTrans" in resp.text
    for endpoint in ("/api/list", "/api/upload", "/api/download", "/api/download-zip", "/api/create-folder", "/api/delete"):
        assert endpoint in resp.text


@pytest.mark.skipif(sys.platform in ("darwin", "win32"), reason="filesystem requires valid unicode names")
def test_listing_and_zip_with_undecodable_name(client, tree, undecodable_file):
    undecodable_file(tree / "a")
    resp = client.get("/api/list", params={"path": "a"})
    assert resp.status_code == 200
    assert [i["name"] for i in resp.json()] == ["c", "empty", "b.txt"]
    resp = client.get("/api/download", params={"path": "a"})
    assert zipfile.ZipFile(io.BytesIO(resp.content)).namelist() == ["a/b.txt", "a/c/d.txt"]


class _SlowDeleteRepository(FileRepository):
    def delete(self, relative_path):
        time.sleep(0.5)
        super().delete(relative_path)


def test_slow_delete_does_not_block_listing(tree):
    server.app.dependency_overrides[server.get_repository] = lambda: _SlowDeleteRepository(tree)
    finished: list[str] = []

    async def scenario() -> None:
        transport = httpx.ASGITransport(app=server.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:

            async def remove() -> None:
                resp = await ac.delete("/api/delete", params={"path": "a/c"})
                assert resp.status_code == 200
                finished.append("delete")

            async def listing() -> None:
                await anyio.sleep(0.1)
                resp = await ac.get("/api/list")
                assert resp.status_code == 200
                finished.append("list")

            async with anyio.create_task_group() as tg:
                tg.start_soon(remove)
                tg.start_soon(listing)

    try:
        anyio.run(scenario)
    finally:
        server.app.dependency_overrides.clear()
    assert finished == ["list", "delete"]
    assert not (tree / "a" / "c").exists()
