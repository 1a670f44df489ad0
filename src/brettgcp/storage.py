"""
Cloud Storage buckets and files (objects).
https://cloud.google.com/storage/docs/json_api/v1

    bucket = storage.bucket("my-todo-app")
    bucket.create_file("/var/todo-app/avatars/heidi/400x400.png", "avatars/heidi/400x400.png")
    for f in bucket.files(prefix="avatars/").all():
        print(f.name, f.size)
"""
from dataclasses import dataclass, field
from functools import partial
from typing import BinaryIO, Self
import datetime
import io
import logging
import mimetypes
import os

from googleapiclient.http import MediaFileUpload, MediaIoBaseDownload, MediaIoBaseUpload

from .access import gcp, execute
from .errors import NotFoundError
from .resources import GoogleCloudResourceBase, ResultList, compact, fetch_page, from_rfc3339, project_id

logger = logging.getLogger(__name__)

_get_service = partial(gcp.require_service, "storage", "v1")

DOWNLOAD_CHUNK_SIZE = 8 * 1024 * 1024
STORAGE_CLASSES = ["STANDARD", "NEARLINE", "COLDLINE", "ARCHIVE",
                   "MULTI_REGIONAL", "REGIONAL", "DURABLE_REDUCED_AVAILABILITY"]


def _storage_class(storage_class: str|None) -> str|None:
    if storage_class is None:
        return None
    sc = str(storage_class).upper().replace("-", "_")
    if sc not in STORAGE_CLASSES:
        raise ValueError(f"Invalid storage class: {storage_class}")
    return sc


@dataclass
class File(GoogleCloudResourceBase):
    """
    https://cloud.google.com/storage/docs/json_api/v1/objects#resource
    """
    bucket: str|None = field(default=None)
    name: str|None = field(default=None)
    size: int|None = field(default=None)
    contentType: str|None = field(default=None)
    md5Hash: str|None = field(default=None)
    crc32c: str|None = field(default=None)
    generation: str|None = field(default=None)
    metageneration: str|None = field(default=None)
    storageClass: str|None = field(default=None)
    timeCreated: str|None = field(default=None)
    updated: str|None = field(default=None)
    metadata: dict = field(default_factory=dict)
    etag: str|None = field(default=None)
    mediaLink: str|None = field(default=None)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.bucket) and bool(self.name)

    def __str__(self) -> str:
        return self.url

    def fixup(self) -> None:
        # uint64 arrives as a string
        if self.size is not None:
            self.size = int(self.size)
        if self.metadata is None:
            self.metadata = {}

    @property
    def path(self) -> str|None:
        return self.name

    @property
    def url(self) -> str:
        return f"gs://{self.bucket}/{self.name}"

    @property
    def content_type(self) -> str|None:
        return self.contentType

    @property
    def created_at(self) -> datetime.datetime|None:
        return from_rfc3339(self.timeCreated)

    @property
    def updated_at(self) -> datetime.datetime|None:
        return from_rfc3339(self.updated)

    def reload(self) -> Self:
        self.update_fields(**execute(_get_service().objects().get(bucket=self.bucket, object=self.name)))
        return self

    refresh = reload

    def delete(self) -> bool:
        execute(_get_service().objects().delete(bucket=self.bucket, object=self.name))
        return True

    def download(self, dest: str|os.PathLike|BinaryIO|None = None,
                 chunk_size: int = DOWNLOAD_CHUNK_SIZE) -> bytes|None:
        """
        https://cloud.google.com/storage/docs/json_api/v1/objects/get
        dest is a local path or a binary file-like object.  With no dest the
        content is returned as bytes.
        """
        request = _get_service().objects().get_media(bucket=self.bucket, object=self.name)
        if dest is None:
            buffer = io.BytesIO()
            self._download(request, buffer, chunk_size)
            return buffer.getvalue()
        if hasattr(dest, "write"):
            self._download(request, dest, chunk_size)
        else:
            with open(dest, "wb") as f:
                self._download(request, f, chunk_size)
        return None

    def _download(self, request, fd: BinaryIO, chunk_size: int) -> None:
        downloader = MediaIoBaseDownload(fd, request, chunksize=chunk_size)
        done = False
        while not done:
            status, done = downloader.next_chunk(num_retries=gcp.num_retries)
            if status:
                logger.debug("%s: %d%%", self.url, int(status.progress() * 100))

    def copy(self, dest_bucket: "str|Bucket", dest_path: str|None = None) -> Self:
        """
        https://cloud.google.com/storage/docs/json_api/v1/objects/copy
        Copy to another bucket (or this one) keeping the name unless dest_path is given.
        """
        bucket_name = dest_bucket.name if isinstance(dest_bucket, Bucket) else str(dest_bucket)
        gapi = execute(_get_service().objects().copy(
            sourceBucket=self.bucket, sourceObject=self.name,
            destinationBucket=bucket_name, destinationObject=dest_path or self.name, body={}))
        return File.from_base(gapi)


@dataclass
class Bucket(GoogleCloudResourceBase):
    """
    https://cloud.google.com/storage/docs/json_api/v1/buckets#resource
    """
    name: str|None = field(default=None)
    id: str|None = field(default=None)
    location: str|None = field(default=None)
    storageClass: str|None = field(default=None)
    versioning: dict = field(default_factory=dict)
    labels: dict = field(default_factory=dict)
    timeCreated: str|None = field(default=None)
    updated: str|None = field(default=None)
    projectNumber: str|None = field(default=None)
    etag: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.name)

    def __str__(self) -> str:
        return f"gs://{self.name}"

    @property
    def storage_class(self) -> str|None:
        return self.storageClass

    @property
    def created_at(self) -> datetime.datetime|None:
        return from_rfc3339(self.timeCreated)

    def versioning_enabled(self) -> bool:
        return bool((self.versioning or {}).get("enabled", False))

    def reload(self) -> Self:
        self.update_fields(**execute(_get_service().buckets().get(bucket=self.name)))
        return self

    def delete(self) -> bool:
        """The bucket has to be empty."""
        execute(_get_service().buckets().delete(bucket=self.name))
        return True

    def files(self, prefix: str|None = None, delimiter: str|None = None, versions: bool|None = None,
              max: int|None = None, token: str|None = None) -> ResultList:
        """
        https://cloud.google.com/storage/docs/json_api/v1/objects/list
        With a delimiter the "directories" found are in result.extra["prefixes"].
        """
        return fetch_page(_get_service().objects().list, "items", File.from_base, token,
                          extra_keys=("prefixes",),
                          bucket=self.name, prefix=prefix, delimiter=delimiter,
                          versions=versions, maxResults=max)

    def file(self, path: str) -> File|None:
        try:
            return File.from_base(execute(_get_service().objects().get(bucket=self.name, object=path)))
        except NotFoundError:
            return None

    def create_file(self, source: str|os.PathLike|BinaryIO|bytes, path: str|None = None,
                    content_type: str|None = None, metadata: dict|None = None) -> File:
        """
        https://cloud.google.com/storage/docs/json_api/v1/objects/insert
        source is a local path, a binary file-like object or bytes.  path
        defaults to the local file name, and is required for anything else.
        """
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        if hasattr(source, "read"):
            if not path:
                raise ValueError("A path is required to upload from a file object")
            media = MediaIoBaseUpload(source, mimetype=content_type or "application/octet-stream",
                                      resumable=True)
        else:
            local = os.fspath(source)
            path = path or os.path.basename(local)
            content_type = content_type or mimetypes.guess_type(local)[0]
            media = MediaFileUpload(local, mimetype=content_type, resumable=True)
        body = compact({"name": path, "contentType": content_type, "metadata": metadata})
        gapi = execute(_get_service().objects().insert(bucket=self.name, body=body, media_body=media))
        logger.info("uploaded gs://%s/%s", self.name, path)
        return File.from_base(gapi)

    upload_file = create_file


def buckets(prefix: str|None = None, max: int|None = None, token: str|None = None,
            project: str|None = None) -> ResultList:
    """https://cloud.google.com/storage/docs/json_api/v1/buckets/list"""
    return fetch_page(_get_service().buckets().list, "items", Bucket.from_base, token,
                      project=project_id(project), prefix=prefix, maxResults=max)


def bucket(name: str) -> Bucket|None:
    try:
        return Bucket.from_base(execute(_get_service().buckets().get(bucket=name)))
    except NotFoundError:
        return None


def create_bucket(name: str, location: str|None = None, storage_class: str|None = None,
                  versioning: bool|None = None, labels: dict|None = None,
                  project: str|None = None) -> Bucket:
    """
    https://cloud.google.com/storage/docs/json_api/v1/buckets/insert
    location e.g. "US" or "europe-west1", storage_class e.g. "nearline".
    """
    body = compact({
        "name": name,
        "location": location,
        "storageClass": _storage_class(storage_class),
        "versioning": None if versioning is None else {"enabled": bool(versioning)},
        "labels": labels,
    })
    gapi = execute(_get_service().buckets().insert(project=project_id(project), body=body))
    logger.info("created bucket %s", name)
    return Bucket.from_base(gapi)
