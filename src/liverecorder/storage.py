"""
Storage layer for Live Recorder.
Local filesystem store for scratch batch files and final recordings.
"""

import os
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

from .logger import get_logger


class StoragePermissionError(Exception):
    """The storage root cannot be written to."""


class Storage:
    """
    Writable directory tree rooted at an explicit path.

    Each recording session receives its Storage as a parameter; sharing
    a root between sessions is up to the caller.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._logger = get_logger('storage')

    async def verify_permission(self) -> None:
        """
        Make sure the root exists and is writable.

        Raises:
            StoragePermissionError: If the root cannot be created or written.
        """
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StoragePermissionError(f"Cannot create {self.root}: {e}") from e

        if not os.access(self.root, os.W_OK | os.X_OK):
            raise StoragePermissionError(f"No write permission for {self.root}")

    async def get_directory(self, name: str, create: bool = True) -> Path:
        """Get (and optionally create) a subdirectory of the root."""
        path = self.root / name
        if create:
            await aiofiles.os.makedirs(path, exist_ok=True)
        return path

    async def get_file(self, directory: Path, name: str, create: bool = True) -> Path:
        """Get (and optionally create) an empty file inside ``directory``."""
        path = Path(directory) / name
        if create and not await aiofiles.os.path.exists(path):
            async with aiofiles.open(path, 'wb'):
                pass
        return path

    async def open_append(self, path: Path):
        """Open a file for incremental binary appends."""
        return await aiofiles.open(path, 'ab')

    async def open_write(self, path: Path):
        """Open a file for writing from scratch."""
        return await aiofiles.open(path, 'wb')

    async def read_file(self, path: Path) -> bytes:
        async with aiofiles.open(path, 'rb') as f:
            return await f.read()

    async def file_size(self, path: Path) -> int:
        stat = await aiofiles.os.stat(path)
        return stat.st_size

    async def remove_entry(self, directory: Path, name: str) -> None:
        """
        Delete a file or an empty directory inside ``directory``.

        Raises:
            OSError: If the entry is missing or a directory is not empty.
        """
        path = Path(directory) / name
        if await aiofiles.os.path.isdir(path):
            await aiofiles.os.rmdir(path)
        else:
            await aiofiles.os.remove(path)
        self._logger.debug(f"Removed {path}")
