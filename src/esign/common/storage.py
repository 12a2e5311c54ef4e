"""
File storage contract and the local filesystem adapter.
"""
import logging
import os
from abc import ABC, abstractmethod

from esign.common.errors import NotFound

logger = logging.getLogger(__name__)


class FileStorage(ABC):

    @abstractmethod
    def download_file_as_buffer(self, url: str) -> bytes:
        ...

    @abstractmethod
    def upload_file(self, path: str, data: bytes, mime_type: str) -> str:
        """Stores ``data`` under ``path`` and returns its public URL."""
        ...

    @abstractmethod
    def delete_file(self, url: str) -> None:
        ...


class LocalFileStorage(FileStorage):
    """Keeps files under ``base_dir`` and serves them from ``public_base_url``."""

    def __init__(self, base_dir: str, public_base_url: str):
        self.base_dir = base_dir
        self.public_base_url = public_base_url.rstrip("/")

    def _local_path(self, url: str) -> str:
        relative = url
        if url.startswith(self.public_base_url):
            relative = url[len(self.public_base_url):]
        relative = relative.lstrip("/")
        base = os.path.abspath(self.base_dir)
        full = os.path.abspath(os.path.join(base, relative))
        if os.path.commonpath([full, base]) != base:
            raise NotFound("File tidak ditemukan.")
        return full

    def download_file_as_buffer(self, url: str) -> bytes:
        path = self._local_path(url)
        if not os.path.exists(path):
            raise NotFound("File tidak ditemukan di storage.")
        with open(path, "rb") as f:
            return f.read()

    def upload_file(self, path: str, data: bytes, mime_type: str) -> str:
        full = self._local_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(data)
        logger.info("Stored %s (%d bytes, %s)", path, len(data), mime_type)
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def delete_file(self, url: str) -> None:
        path = self._local_path(url)
        if os.path.exists(path):
            os.remove(path)
            logger.info("Deleted %s", path)
