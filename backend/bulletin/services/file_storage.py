"""Local-disk storage for post attachments."""
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from bulletin.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStorageConfig:
    """Where attachments live and how large they may be."""
    upload_dir: str
    max_upload_size: int = 50 * 1024 * 1024

    @classmethod
    def from_settings(cls) -> "FileStorageConfig":
        return cls(
            upload_dir=settings.FILE_STORAGE_PATH,
            max_upload_size=settings.MAX_UPLOAD_SIZE,
        )


class LocalFileStorage:
    """Handles attachment read/write under a single upload directory."""

    def __init__(self, config: FileStorageConfig):
        self.config = config
        self.base_path = Path(config.upload_dir).resolve()

    @staticmethod
    def new_stored_name(original_name: str) -> str:
        """Random token plus the original extension, e.g. `3f2a...9c.pdf`."""
        return f"{uuid.uuid4().hex}{Path(original_name).suffix}"

    async def save(self, file_bytes: bytes, stored_name: str) -> str:
        """Write bytes under `stored_name`. Returns the absolute path.

        A partially written file is removed before the error propagates.
        """
        self.base_path.mkdir(parents=True, exist_ok=True)
        file_path = self.base_path / stored_name
        try:
            # "xb" refuses to clobber an existing attachment
            async with aiofiles.open(file_path, "xb") as f:
                await f.write(file_bytes)
        except FileExistsError:
            raise
        except BaseException:
            self.discard(str(file_path))
            raise
        return str(file_path)

    async def read(self, storage_path: str) -> bytes:
        """Read file bytes. Raises FileNotFoundError when the file is gone."""
        async with aiofiles.open(storage_path, "rb") as f:
            return await f.read()

    def exists(self, storage_path: str) -> bool:
        return Path(storage_path).is_file()

    async def delete(self, storage_path: str) -> bool:
        """Delete file from storage. Returns False if it was already missing."""
        path = Path(storage_path)
        if not path.exists():
            return False
        os.remove(path)
        return True

    def discard(self, storage_path: str) -> None:
        """Best-effort removal used while unwinding a failed upload."""
        try:
            os.remove(storage_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove orphaned upload {storage_path}: {e}")
