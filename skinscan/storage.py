"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlsplit

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from skinscan.errors import UpstreamFetchError, UpstreamStorageError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def ensure_bucket(self) -> bool:
        ...

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def fetch_url(self, url: str) -> bytes:
        ...


def fetch_url_bytes(url: str, timeout: float = REQUEST_TIMEOUT) -> bytes:
    """
    Fetches the content of a given URL.

    Args:
        url (str): The (usually signed) URL of the stored image.
        timeout (float): Seconds before the request is abandoned.

    Returns:
        bytes: The response body; raises UpstreamFetchError on timeouts,
            connection errors and non-2xx responses.
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.Timeout as exc:
        logger.warning("Timed out fetching image from storage")
        raise UpstreamFetchError("Timed out fetching image from storage") from exc
    except requests.RequestException as exc:
        logger.warning("Failed to fetch image from storage: %s", exc)
        raise UpstreamFetchError() from exc
    return response.content


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://storage.example.test"
    bucket: str = "skinscan-scans"
    stored_objects: dict[str, bytes] = field(default_factory=dict)
    content_types: dict[str, str] = field(default_factory=dict)
    bucket_created: bool = False

    def ensure_bucket(self) -> bool:
        created = not self.bucket_created
        self.bucket_created = True
        return created

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        if path in self.stored_objects:
            raise UpstreamStorageError("Object already exists")
        self.stored_objects[path] = bytes(data)
        self.content_types[path] = content_type

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{self.bucket}/{path}?op=get&expires={expires_in}"

    def fetch_url(self, url: str) -> bytes:
        prefix = f"{self.base_url}/{self.bucket}/"
        if not url.startswith(prefix):
            raise UpstreamFetchError()
        path = urlsplit(url).path[len(urlsplit(prefix).path):]
        stored = self.stored_objects.get(path)
        if stored is None:
            raise UpstreamFetchError()
        return stored

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Supabase storage S3 endpoint, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    fetch_timeout: float = REQUEST_TIMEOUT

    def __post_init__(self):
        config = Config(
            signature_version="s3v4",
            connect_timeout=self.fetch_timeout,
            read_timeout=self.fetch_timeout,
            retries={"max_attempts": 1},
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def ensure_bucket(self) -> bool:
        """Create the private bucket if missing. Returns True when it was created."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return False
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if status != 404:
                raise
        try:
            self._client.create_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                return False
            raise
        logger.info("Storage bucket created: %s", self.bucket)
        return True

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Upload of %s failed: %s", path, exc)
            raise UpstreamStorageError() from exc

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamStorageError("Failed to sign image URL") from exc

    def fetch_url(self, url: str) -> bytes:
        return fetch_url_bytes(url, timeout=self.fetch_timeout)
