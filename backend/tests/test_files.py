"""Attachment upload, download and cleanup."""
import os
from urllib.parse import quote

import aiofiles
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import create_post
from bulletin.main import app
from bulletin.models.post_file import PostFile
from bulletin.services.file_service import PostFileService, get_file_service
from bulletin.services.file_storage import FileStorageConfig, LocalFileStorage


def _upload(client, post_id, *files):
    return client.post(f"/api/files/upload/{post_id}", files=[("files", f) for f in files])


def test_upload_and_download_round_trip(client, upload_dir):
    post = create_post(client)
    body = b"%PDF-1.4 fake report"
    resp = _upload(client, post["id"], ("report.pdf", body, "application/pdf"))
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["message"] == "1 file(s) uploaded"
    record = data["files"][0]
    assert record["originalName"] == "report.pdf"
    assert record["storedName"].endswith(".pdf")
    assert record["storedName"] != "report.pdf"
    assert record["fileSize"] == len(body)
    assert record["isImage"] is False
    assert record["downloadUrl"] == f"/api/files/download/{record['storedName']}"
    assert (upload_dir / record["storedName"]).read_bytes() == body

    download = client.get(record["downloadUrl"])
    assert download.status_code == 200
    assert download.content == body
    assert download.headers["content-type"] == "application/octet-stream"
    assert 'filename="report.pdf"' in download.headers["content-disposition"]


def test_download_non_ascii_name(client):
    post = create_post(client)
    name = "회의록 2024.txt"
    record = _upload(client, post["id"], (name, b"minutes", "text/plain")).json()["files"][0]

    download = client.get(record["downloadUrl"])
    assert download.status_code == 200
    assert f"filename*=UTF-8''{quote(name, safe='')}" in download.headers["content-disposition"]


def test_upload_multiple_files_skips_empty_parts(client):
    post = create_post(client)
    resp = _upload(
        client, post["id"],
        ("a.txt", b"aaa", "text/plain"),
        ("empty.txt", b"", "text/plain"),
        ("photo.png", b"\x89PNG....", "image/png"),
    )
    assert resp.status_code == 201
    files = resp.json()["files"]
    assert [f["originalName"] for f in files] == ["a.txt", "photo.png"]
    assert files[1]["isImage"] is True

    listed = client.get(f"/api/files/post/{post['id']}").json()
    assert [f["originalName"] for f in listed] == ["a.txt", "photo.png"]

    detail = client.get(f"/api/posts/{post['id']}").json()
    assert detail["fileCount"] == 2
    assert detail["hasFiles"] is True
    assert len(detail["filesDetail"]) == 2


def test_upload_only_empty_file_is_rejected(client, upload_dir):
    post = create_post(client)
    resp = _upload(client, post["id"], ("empty.txt", b"", "text/plain"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_input"
    assert client.get(f"/api/files/post/{post['id']}").json() == []


def test_upload_to_missing_post_leaves_no_file(client, upload_dir):
    resp = _upload(client, 777, ("a.txt", b"data", "text/plain"))
    assert resp.status_code == 404
    assert not upload_dir.exists() or list(upload_dir.iterdir()) == []


def test_upload_over_limit_is_rejected(client, tmp_path):
    small = PostFileService(LocalFileStorage(FileStorageConfig(str(tmp_path / "small"), max_upload_size=4)))
    app.dependency_overrides[get_file_service] = lambda: small
    post = create_post(client)

    resp = _upload(client, post["id"], ("big.bin", b"12345", "application/octet-stream"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_input"


def test_download_unknown_file_returns_404(client):
    resp = client.get("/api/files/download/nope.pdf")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_download_with_missing_bytes_reports_inconsistency(client, upload_dir):
    post = create_post(client)
    record = _upload(client, post["id"], ("gone.txt", b"bye", "text/plain")).json()["files"][0]
    os.remove(upload_dir / record["storedName"])

    resp = client.get(record["downloadUrl"])
    assert resp.status_code == 404
    assert resp.json()["error"] == "storage_inconsistency"


def test_file_info(client):
    post = create_post(client)
    record = _upload(client, post["id"], ("notes.txt", b"x" * 1536, "text/plain")).json()["files"][0]

    info = client.get(f"/api/files/{record['id']}").json()
    assert info["file"]["id"] == record["id"]
    assert info["formattedSize"] == "1.5 KB"
    assert client.get("/api/files/4242").status_code == 404


def test_delete_file(client, upload_dir):
    post = create_post(client)
    record = _upload(client, post["id"], ("a.txt", b"abc", "text/plain")).json()["files"][0]

    assert client.delete(f"/api/files/{record['id']}").status_code == 200
    assert not (upload_dir / record["storedName"]).exists()
    assert client.get(f"/api/files/{record['id']}").status_code == 404


def test_delete_file_with_missing_bytes_succeeds(client, upload_dir):
    post = create_post(client)
    record = _upload(client, post["id"], ("a.txt", b"abc", "text/plain")).json()["files"][0]
    os.remove(upload_dir / record["storedName"])

    assert client.delete(f"/api/files/{record['id']}").status_code == 200
    assert client.get(f"/api/files/post/{post['id']}").json() == []


def test_deleting_post_removes_attachments(client, upload_dir):
    post = create_post(client)
    record = _upload(client, post["id"], ("a.txt", b"abc", "text/plain")).json()["files"][0]

    assert client.delete(f"/api/posts/{post['id']}").status_code == 200
    assert client.get(f"/api/files/{record['id']}").status_code == 404
    assert not (upload_dir / record["storedName"]).exists()


def test_file_search_images_and_stats(client):
    post = create_post(client)
    _upload(
        client, post["id"],
        ("Holiday.PNG", b"img", "image/png"),
        ("holiday-plan.txt", b"plan!", "text/plain"),
    )

    found = client.get("/api/files/search", params={"name": "holiday"}).json()
    assert len(found) == 2
    images = client.get("/api/files/images").json()
    assert [f["originalName"] for f in images] == ["Holiday.PNG"]

    stats = client.get("/api/files/stats").json()
    assert stats == {"totalFiles": 2, "totalSize": 8, "formattedTotalSize": "8.0 B", "imageFiles": 1}

    with_files = client.get("/api/posts/with-files").json()
    assert [p["id"] for p in with_files["items"]] == [post["id"]]


def test_upload_multiple_returns_count(client):
    post = create_post(client)
    _upload(client, post["id"], ("a.txt", b"aaa", "text/plain"), ("b.txt", b"bbb", "text/plain"))
    resp = client.post(
        f"/api/files/upload-multiple/{post['id']}",
        files=[("files", ("c.txt", b"ccc", "text/plain")), ("files", ("d.txt", b"ddd", "text/plain"))],
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["count"] == 2
    assert [f["originalName"] for f in data["files"]] == ["c.txt", "d.txt"]
    assert len(client.get(f"/api/files/post/{post['id']}").json()) == 4


def test_upload_multiple_rejects_empty_part(client):
    post = create_post(client)
    resp = client.post(
        f"/api/files/upload-multiple/{post['id']}",
        files=[("files", ("ok.txt", b"ok", "text/plain")), ("files", ("empty.txt", b"", "text/plain"))],
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_input"
    # parts before the empty one were already stored
    listed = client.get(f"/api/files/post/{post['id']}").json()
    assert [f["originalName"] for f in listed] == ["ok.txt"]


def _file_count(run_db):
    async def count(db):
        return (await db.execute(select(func.count(PostFile.id)))).scalar_one()

    return run_db(count)


def test_failed_row_insert_removes_written_bytes(client, run_db, upload_dir, monkeypatch):
    post_id = create_post(client)["id"]
    service = PostFileService(LocalFileStorage(FileStorageConfig(upload_dir=str(upload_dir))))
    real_commit = AsyncSession.commit

    async def failing_commit(self):
        if any(isinstance(obj, PostFile) for obj in self.new):
            raise SQLAlchemyError("insert failed")
        await real_commit(self)

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    async def upload(db):
        with pytest.raises(SQLAlchemyError):
            await service.upload_file(db, post_id, b"payload", "doc.txt", "text/plain")

    run_db(upload)

    assert list(upload_dir.iterdir()) == []
    assert _file_count(run_db) == 0


class _BrokenWrite:
    """Creates the target file, then fails on write like a full disk."""

    def __init__(self, path):
        self.path = path

    async def __aenter__(self):
        open(self.path, "xb").close()
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def write(self, data):
        raise OSError("No space left on device")


def test_failed_disk_write_leaves_no_file_or_row(client, run_db, upload_dir, monkeypatch):
    post_id = create_post(client)["id"]
    service = PostFileService(LocalFileStorage(FileStorageConfig(upload_dir=str(upload_dir))))
    monkeypatch.setattr(aiofiles, "open", lambda path, mode="r", **kwargs: _BrokenWrite(path))

    async def upload(db):
        with pytest.raises(OSError):
            await service.upload_file(db, post_id, b"payload", "doc.txt", "text/plain")

    run_db(upload)

    assert list(upload_dir.iterdir()) == []
    assert _file_count(run_db) == 0
