"""
Object Storage

Where finished builds are put. A backend takes an opaque id and the encoded
bytes and returns a location string for the caller.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union
import asyncio
import logging
import urllib.parse


logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Abstract storage backend."""

    @abstractmethod
    async def put(self, id: str, data: bytes) -> str:
        """Store data under id and return its location."""


class FileSystemStorage(ObjectStorage):
    """
    Store builds as files in a local directory.

    The id is percent-quoted so any identifier maps to a single file name
    inside root.
    """

    def __init__(self, root: Union[str, Path] = ".", extension: str = "glb"):
        self.root = Path(root)
        self.extension = extension

    def path_for(self, id: str) -> Path:
        if not id:
            raise ValueError("id must not be empty")
        name = urllib.parse.quote(id, safe="")
        return self.root / f"{name}.{self.extension}"

    def _write(self, path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, id: str, data: bytes) -> str:
        path = self.path_for(id)
        await asyncio.to_thread(self._write, path, data)
        logger.info("stored %d bytes at %s", len(data), path)
        return str(path)
