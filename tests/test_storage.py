import io

import pytest
from googleapiclient.http import MediaFileUpload, MediaIoBaseUpload

from brettgcp import storage

from conftest import PROJECT, respond, http_error

def file_gapi(name="avatars/heidi/400x400.png", bucket="my-todo-app"):
    return {"bucket": bucket, "name": name, "size": "1024", "contentType": "image/png",
            "timeCreated": "2016-01-01T00:00:00.000Z", "generation": "1451606400000000"}

class FakeDownload():
    """Stands in for MediaIoBaseDownload, writing the content in two chunks."""
    content = b"hello world"

    def __init__(self, fd, request, chunksize=None):
        self.fd = fd
        self.chunks = [self.content[:5], self.content[5:]]

    def next_chunk(self, num_retries=0):
        self.fd.write(self.chunks.pop(0))
        return None, not self.chunks

@pytest.fixture()
def svc(mock_service):
    return mock_service(storage)

def test_buckets_and_missing_bucket(svc):
    method = respond(svc, "buckets", "list", response={"items": [{"name": "my-todo-app", "location": "US"}],
                                                        "nextPageToken": "t1"})
    respond(svc, "buckets", "get", side_effect=http_error(404, "Not Found"))
    buckets = storage.buckets(prefix="my-", max=5)
    assert method.call_args.kwargs == {"project": PROJECT, "prefix": "my-", "maxResults": 5}
    assert buckets[0].name == "my-todo-app"
    assert buckets.has_next()
    assert storage.bucket("nope") is None

def test_create_bucket(svc):
    method = respond(svc, "buckets", "insert", response={"name": "archive", "storageClass": "NEARLINE",
                                                          "versioning": {"enabled": True}})
    b = storage.create_bucket("archive", location="US", storage_class="nearline", versioning=True)
    assert method.call_args.kwargs == {"project": PROJECT, "body": {
        "name": "archive", "location": "US", "storageClass": "NEARLINE", "versioning": {"enabled": True}}}
    assert b.versioning_enabled()
    with pytest.raises(ValueError):
        storage.create_bucket("x", storage_class="freezing")

def test_files_with_prefixes(svc):
    method = respond(svc, "objects", "list", response={"items": [file_gapi()],
                                                        "prefixes": ["avatars/heidi/"]})
    files = storage.Bucket(name="my-todo-app").files(prefix="avatars/", delimiter="/")
    assert method.call_args.kwargs == {"bucket": "my-todo-app", "prefix": "avatars/", "delimiter": "/"}
    f = files[0]
    assert f.size == 1024
    assert f.url == "gs://my-todo-app/avatars/heidi/400x400.png"
    assert f.created_at.year == 2016
    assert files.extra["prefixes"] == ["avatars/heidi/"]

def test_create_file_from_path(svc, tmp_path):
    local = tmp_path / "400x400.png"
    local.write_bytes(b"\x89PNG")
    method = respond(svc, "objects", "insert", response=file_gapi())
    f = storage.Bucket(name="my-todo-app").create_file(str(local), "avatars/heidi/400x400.png",
                                                       metadata={"owner": "heidi"})
    kwargs = method.call_args.kwargs
    assert kwargs["bucket"] == "my-todo-app"
    assert kwargs["body"] == {"name": "avatars/heidi/400x400.png", "contentType": "image/png",
                              "metadata": {"owner": "heidi"}}
    assert isinstance(kwargs["media_body"], MediaFileUpload)
    assert f.name == "avatars/heidi/400x400.png"

def test_create_file_from_bytes(svc):
    method = respond(svc, "objects", "insert", response=file_gapi("notes.txt"))
    bucket = storage.Bucket(name="my-todo-app")
    bucket.create_file(b"some notes", "notes.txt", content_type="text/plain")
    kwargs = method.call_args.kwargs
    assert kwargs["body"] == {"name": "notes.txt", "contentType": "text/plain"}
    assert isinstance(kwargs["media_body"], MediaIoBaseUpload)
    with pytest.raises(ValueError):
        bucket.create_file(io.BytesIO(b"no name"))

def test_download(svc, monkeypatch, tmp_path):
    monkeypatch.setattr(storage, "MediaIoBaseDownload", FakeDownload)
    get_media = svc.objects.return_value.get_media
    f = storage.File.from_base(file_gapi())
    assert f.download() == b"hello world"
    assert get_media.call_args.kwargs == {"bucket": "my-todo-app", "object": "avatars/heidi/400x400.png"}
    dest = tmp_path / "out.png"
    assert f.download(dest) is None
    assert dest.read_bytes() == b"hello world"
    assert get_media.call_count == 2

def test_copy_and_delete(svc):
    copy = respond(svc, "objects", "copy", response=file_gapi(bucket="backup"))
    delete = respond(svc, "objects", "delete", response=None)
    f = storage.File.from_base(file_gapi())
    copied = f.copy(storage.Bucket(name="backup"))
    assert copy.call_args.kwargs == {"sourceBucket": "my-todo-app", "sourceObject": "avatars/heidi/400x400.png",
                                     "destinationBucket": "backup",
                                     "destinationObject": "avatars/heidi/400x400.png", "body": {}}
    assert copied.bucket == "backup"
    assert f.delete()
    assert delete.call_args.kwargs == {"bucket": "my-todo-app", "object": "avatars/heidi/400x400.png"}
