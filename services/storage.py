"""
File Storage
upload(bytes, filename, mime_type) -> url
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from core.config import CONFIG

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        ...


def safe_filename(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", str(name or "").strip())
    return cleaned.strip("._") or "file"


class LocalFileStorage:
    """Writes uploads under a directory and returns base_url/filename."""

    def __init__(self, base_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or CONFIG['storage_dir'])
        self.base_url = (base_url or CONFIG['storage_base_url']).rstrip("/")

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        name = safe_filename(filename)
        path = self.base_dir / name
        await asyncio.to_thread(self._write, path, data)
        logger.info("📁 Stored %s (%d bytes, %s)", name, len(data), mime_type)
        return f"{self.base_url}/{name}"

    @staticmethod
    def _write(path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
