"""
Supporting document storage for questionnaire answers.

Files land flat under UPLOAD_DIR with a generated name:

    <timestamp>_<random>_<question_id>.<ext>

The stored name is what the reconciler records on the answer row and what
the download endpoint accepts.
"""

import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

from dataconfirm.core.config import settings
from dataconfirm.core.exceptions import (
    FileTooLargeError,
    InvalidFileTypeError,
    StoredFileNotFoundError,
)
from dataconfirm.core.logging_config import logger

_SAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower().lstrip(".")


class FileStore:
    """Local-disk store for uploaded files"""

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        allowed_extensions: Optional[List[str]] = None,
        max_size: Optional[int] = None,
    ):
        self.base_dir = Path(base_dir) if base_dir else settings.UPLOAD_DIR
        self.allowed_extensions = allowed_extensions or settings.ALLOWED_EXTENSIONS
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE

    def validate(self, filename: str, size: int) -> str:
        """Check extension and size, return the normalised extension"""
        ext = file_extension(filename)
        if ext not in self.allowed_extensions:
            raise InvalidFileTypeError(ext or "(none)", self.allowed_extensions)
        if size > self.max_size:
            raise FileTooLargeError(size, self.max_size)
        return ext

    def _stored_name(self, question_id: str, ext: str) -> str:
        stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        safe_question = _SAFE_CHARS.sub("_", question_id)[:50] or "file"
        return f"{stamp}_{uuid.uuid4().hex[:12]}_{safe_question}.{ext}"

    async def save(self, question_id: str, filename: str, content: bytes) -> str:
        """Write an uploaded file and return its stored name"""
        ext = self.validate(filename, len(content))

        self.base_dir.mkdir(parents=True, exist_ok=True)
        stored_name = self._stored_name(question_id, ext)

        async with aiofiles.open(self.base_dir / stored_name, "wb") as f:
            await f.write(content)

        logger.info(
            f"[FileStore] Saved {filename} for {question_id} as {stored_name} ({len(content)} bytes)"
        )
        return stored_name

    def resolve(self, stored_name: str) -> Path:
        """Absolute path of a stored file; rejects anything outside base_dir"""
        base = self.base_dir.resolve()
        candidate = (base / stored_name).resolve()
        if candidate.parent != base or not candidate.is_file():
            raise StoredFileNotFoundError(stored_name)
        return candidate

    async def delete(self, stored_name: str) -> bool:
        try:
            path = self.resolve(stored_name)
        except StoredFileNotFoundError:
            return False
        await aiofiles.os.remove(path)
        return True


_file_store: Optional[FileStore] = None


def get_file_store() -> FileStore:
    """Process-wide file store (FastAPI dependency)"""
    global _file_store
    if _file_store is None:
        _file_store = FileStore()
    return _file_store
