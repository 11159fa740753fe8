# =============================================================================
# skill_core/offline/blob_storage.py
# File Uploads in a Supabase Storage Bucket
# =============================================================================
"""
BlobStorage - uploads, downloads and deletes named files in one bucket.

Files arrive either as raw bytes or as ``data:`` URLs (what a browser
upload widget hands over). Stored paths look like::

    public/1718000000000-ward_handbook.pdf

The millisecond timestamp keeps paths unique, so uploads never overwrite.
"""

from __future__ import annotations
import base64
import binascii
import logging
import re
import time
from typing import Any, Iterable, List, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

from skill_core.errors import (
    BlobStorageError,
    DataValidationError,
    OperationResult,
    UploadResult,
)

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.\-_]")
_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def sanitize_file_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9.-_] with '_'."""
    return _UNSAFE_CHARS.sub("_", name)


def build_storage_path(prefix: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    name = f"{timestamp_ms}-{sanitize_file_name(file_name)}"
    return f"{prefix}/{name}" if prefix else name


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a data URL into its MIME type and decoded bytes.

    Raises:
        DataValidationError: if the string is not a data URL
    """
    match = _DATA_URL.match(data_url or "")
    if not match or not match.group("mime"):
        raise DataValidationError(
            "Invalid data URL format for file conversion",
            field="data_url",
        )

    payload = match.group("payload")
    try:
        if ";base64" in match.group("params"):
            return match.group("mime"), base64.b64decode(payload, validate=True)
        return match.group("mime"), unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as e:
        raise DataValidationError(f"Invalid data URL payload: {e}", field="data_url")


def encode_data_url(data: bytes, content_type: str = "application/octet-stream") -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


class BlobStorage:
    """
    Adapter over ``client.storage`` for one bucket.

    Usage:
        blobs = BlobStorage(client, "app_files", prefix="public")
        result = blobs.upload(data_url, "handbook.pdf")
        url = blobs.get_public_url(result.path)
        blobs.delete([result.path])
    """

    def __init__(
        self,
        client: Any,
        bucket_name: str = "app_files",
        prefix: str = "public",
        cache_control: str = "3600",
        local_cache: Any = None,
    ):
        self.client = client
        self.bucket_name = bucket_name
        self.prefix = prefix
        self.cache_control = cache_control
        self.local_cache = local_cache

    def is_connected(self) -> bool:
        return self.client is not None

    def _bucket(self):
        return self.client.storage.from_(self.bucket_name)

    def _cache_put(self, path: str, data: bytes) -> None:
        if self.local_cache is None:
            return
        try:
            self.local_cache.initialize()
            self.local_cache.put_blob(path, data)
        except Exception as e:
            logger.warning(f"Could not cache file {path} locally: {e}")

    def upload(
        self,
        data: Union[bytes, str],
        suggested_name: str,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """
        Store a file under a fresh, never-overwritten path.

        Args:
            data: Raw bytes or a data URL
            suggested_name: Original file name (sanitized into the path)
            content_type: MIME type; taken from the data URL when omitted

        Returns:
            UploadResult with the stored path, or path='' and an error
        """
        try:
            if isinstance(data, str):
                mime, payload = decode_data_url(data)
                content_type = content_type or mime
            else:
                payload = bytes(data)

            if not self.is_connected():
                raise BlobStorageError("File storage is not configured")

            path = build_storage_path(self.prefix, suggested_name)
            file_options = {
                "cache-control": self.cache_control,
                "upsert": "false",
                "content-type": content_type or "application/octet-stream",
            }
            self._bucket().upload(path, payload, file_options=file_options)

        except BlobStorageError as e:
            logger.error(f"Storage upload error: {e.message}")
            return UploadResult(path="", error=e)
        except DataValidationError as e:
            logger.error(f"Storage upload rejected: {e.message}")
            return UploadResult(path="", error=BlobStorageError(e.message))
        except Exception as e:
            logger.error(f"Error during file upload: {e}")
            return UploadResult(path="", error=BlobStorageError(f"File upload failed: {e}"))

        self._cache_put(path, payload)
        logger.info(f"Uploaded {len(payload)} bytes to {self.bucket_name}/{path}")
        return UploadResult(path=path)

    def get_public_url(self, path: Optional[str]) -> Optional[str]:
        """Public URL of a stored path (no network call); None for an empty path."""
        if not path or not self.is_connected():
            return None
        url = self._bucket().get_public_url(path)
        # Older storage clients append an empty query string
        return url[:-1] if isinstance(url, str) and url.endswith("?") else url

    def download(self, path: str) -> Optional[bytes]:
        """
        Read a stored file, preferring the local blob cache.

        Returns:
            File bytes, or None if unavailable
        """
        if not path:
            return None

        if self.local_cache is not None:
            try:
                self.local_cache.initialize()
                cached = self.local_cache.get_blob(path)
                if cached is not None:
                    return cached
            except Exception as e:
                logger.warning(f"Local file cache unavailable: {e}")

        if not self.is_connected():
            return None

        try:
            data = self._bucket().download(path)
        except Exception as e:
            logger.error(f"Error downloading {path}: {e}")
            return None

        self._cache_put(path, data)
        return data

    def delete(self, paths: Iterable[str]) -> OperationResult:
        """
        Remove stored files in one call. Never raises.

        Returns:
            OperationResult carrying the removed paths as data
        """
        targets: List[str] = [p for p in dict.fromkeys(paths) if p]
        if not targets:
            return OperationResult.success(data=[])

        if self.local_cache is not None:
            for path in targets:
                try:
                    self.local_cache.initialize()
                    self.local_cache.delete_blob(path)
                except Exception as e:
                    logger.warning(f"Could not drop cached file {path}: {e}")

        if not self.is_connected():
            return OperationResult.failure(BlobStorageError("File storage is not configured"))

        try:
            self._bucket().remove(targets)
        except Exception as e:
            logger.error(f"Storage delete error for {len(targets)} file(s): {e}")
            return OperationResult.failure(
                BlobStorageError(f"File deletion failed: {e}", details={"paths": targets})
            )

        logger.info(f"Deleted {len(targets)} file(s) from {self.bucket_name}")
        return OperationResult.success(data=targets)
