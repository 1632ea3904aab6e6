"""File uploads with the Dropbox calls stubbed out."""
import io

import pytest

import routes.uploads


@pytest.fixture
def fake_dropbox(monkeypatch):
    stored = []

    def fake_upload(file, filename, folder="uploads"):
        path = f"/Classroom/{folder}/{filename}"
        stored.append((path, file.read()))
        return f"https://dl.example.com{path}?raw=1", path

    monkeypatch.setattr(routes.uploads, "upload_file", fake_upload)
    monkeypatch.setattr(routes.uploads, "delete_file_from_dropbox", lambda path: True)
    return stored


class TestUpload:
    def test_single_upload(self, client, student, auth, fake_dropbox):
        res = client.post("/api/upload", headers=auth(student), content_type="multipart/form-data",
                          data={"file": (io.BytesIO(b"hello world"), "my notes.txt")})
        assert res.status_code == 201
        meta = res.get_json()["file"]
        assert meta["file_name"] == "my_notes.txt"
        assert meta["file_size"] == 11
        assert meta["file_path"].startswith("/Classroom/uploads/student1/")
        assert fake_dropbox[0][1] == b"hello world"

    def test_rejects_unknown_extension(self, client, student, auth, fake_dropbox):
        res = client.post("/api/upload", headers=auth(student), content_type="multipart/form-data",
                          data={"file": (io.BytesIO(b"MZ"), "setup.exe")})
        assert res.status_code == 400
        assert fake_dropbox == []

    def test_missing_file(self, client, student, auth, fake_dropbox):
        res = client.post("/api/upload", headers=auth(student), content_type="multipart/form-data", data={})
        assert res.status_code == 400

    def test_multiple_upload_limit(self, client, student, auth, fake_dropbox):
        files = [(io.BytesIO(b"x"), f"f{i}.txt") for i in range(6)]
        res = client.post("/api/upload/multiple", headers=auth(student), content_type="multipart/form-data",
                          data={"files": files})
        assert res.status_code == 400

        files = [(io.BytesIO(b"x"), f"f{i}.txt") for i in range(3)]
        res = client.post("/api/upload/multiple", headers=auth(student), content_type="multipart/form-data",
                          data={"files": files})
        assert res.status_code == 201
        assert len(res.get_json()["files"]) == 3

    def test_storage_not_configured(self, client, student, auth):
        res = client.post("/api/upload", headers=auth(student), content_type="multipart/form-data",
                          data={"file": (io.BytesIO(b"hello"), "notes.txt")})
        assert res.status_code == 503


class TestDeleteUpload:
    def test_only_own_folder(self, client, student, auth, fake_dropbox):
        res = client.delete("/api/upload", headers=auth(student),
                            json={"file_path": "/Classroom/uploads/student2/secret.pdf"})
        assert res.status_code == 403
        res = client.delete("/api/upload", headers=auth(student),
                            json={"file_path": "/Classroom/uploads/student1/../student2/secret.pdf"})
        assert res.status_code == 403
        res = client.delete("/api/upload", headers=auth(student),
                            json={"file_path": "/Classroom/uploads/student1/notes.pdf"})
        assert res.status_code == 200
