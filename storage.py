"""
Photo storage for donations: S3-compatible buckets and an in-memory double.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from errors import StorageError

logger = logging.getLogger(__name__)

PHOTO_PREFIX = "donations"


class ObjectStore(Protocol):
    """Accepts a byte buffer and returns a durable URL."""

    def upload(self, data: bytes, content_type: Optional[str] = None) -> str:
        ...


def _new_key() -> str:
    return f"{PHOTO_PREFIX}/{uuid.uuid4().hex}"


@dataclass
class InMemoryObjectStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: Dict[str, bytes] = field(default_factory=dict)
    fail_uploads: bool = False

    def upload(self, data: bytes, content_type: Optional[str] = None) -> str:
        if self.fail_uploads:
            raise StorageError("Photo upload failed")
        key = _new_key()
        self.stored_objects[key] = bytes(data)
        return f"{self.base_url}/{key}"


@dataclass
class S3ObjectStore:
    """
    S3-compatible object store. Objects are written under `donations/`
    and addressed through `public_base_url` when one is configured.
    """

    bucket: str
    region: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def upload(self, data: bytes, content_type: Optional[str] = None) -> str:
        key = _new_key()
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Upload of %s to bucket %s failed", key, self.bucket)
            raise StorageError("Photo upload failed") from exc
        return self._url_for(key)
