"""
Storage abstraction for Vercel Blob and in-memory testing.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

from estate_backend.config import BlobStoreConfig

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"
BLOB_API_VERSION = "7"
REQUEST_TIMEOUT_SECONDS = 60


class UploadError(RuntimeError):
    """Raised when the blob store fails to accept an upload."""


class StorageClient(Protocol):
    """Defines the operations the API needs from blob storage."""

    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes publicly readable under path and return the URL."""
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/blob"
    stored_objects: dict = field(default_factory=dict)
    fail: bool = False

    def put(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail:
            raise UploadError(f"upload of {path} rejected")
        self.stored_objects[path] = bytes(data)
        return f"{self.base_url}/{path}"


class VercelBlobStorageClient:
    """
    Client for the Vercel Blob HTTP API.

    Objects are written with public access and without a random suffix, so
    the returned URL ends with the path that was requested.
    """

    def __init__(self, config: BlobStoreConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session or requests.Session()

    def put(self, path: str, data: bytes, content_type: str) -> str:
        headers = {
            "authorization": f"Bearer {self.config.token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
        }
        try:
            response = self._session.put(
                f"{self.config.api_url}/{path}",
                params={"access": "public"},
                data=data,
                headers=headers,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            url = response.json().get("url")
        except (requests.RequestException, ValueError) as exc:
            raise UploadError(
                f"upload of {path} to store {self.config.store_id} failed"
            ) from exc
        if not url:
            raise UploadError(f"blob store returned no url for {path}")
        return url


def build_upload_path(original_name: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    # Only the final path component of a client-supplied name is kept.
    name = os.path.basename((original_name or "").replace("\\", "/")) or "upload"
    return f"{UPLOAD_PREFIX}/{now_ms}_{name}"


def upload_asset(storage: StorageClient, data: bytes, original_name: str) -> str:
    """Write an uploaded file under a timestamped path and return its URL."""
    path = build_upload_path(original_name)
    content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    url = storage.put(path, data, content_type)
    logger.info("Uploaded %s (%d bytes)", path, len(data))
    return url
