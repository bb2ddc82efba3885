"""
Storage Service - local disk uploads

Files land in UPLOAD_PATH/<kind>/<kind>-<timestamp>-<random>.<ext> and
are served back under /uploads/<kind>/<file>.
"""

import secrets
import time
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import UploadError, InvalidFileTypeError, FileTooLargeError
from app.core.logging_config import logger


UPLOAD_URL_PREFIX = "/uploads"
CHUNK_SIZE = 1024 * 1024


def file_extension(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def generate_filename(kind: str, extension: str) -> str:
    """<kind>-<millis>-<random>.<ext>"""
    return f"{kind}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.{extension}"


class StorageService:
    """Validates and writes uploaded files to local disk"""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir else settings.UPLOAD_DIR

    def validate(self, upload: UploadFile, allowed: List[str], max_size: int) -> str:
        if upload is None or not upload.filename:
            raise UploadError("No file uploaded")

        extension = file_extension(upload.filename)
        if extension not in allowed:
            raise InvalidFileTypeError(extension or "unknown", allowed)

        size = getattr(upload, "size", None)
        if size is not None and size > max_size:
            raise FileTooLargeError(size, max_size)

        return extension

    async def save(
        self,
        upload: UploadFile,
        kind: str,
        allowed: Optional[List[str]] = None,
        max_size: Optional[int] = None,
    ) -> str:
        """
        Store an upload and return its public URL.

        Raises InvalidFileTypeError / FileTooLargeError before anything
        is kept on disk.
        """
        allowed = allowed or settings.ALLOWED_EXTENSIONS
        max_size = max_size or settings.MAX_UPLOAD_SIZE
        extension = self.validate(upload, allowed, max_size)

        target_dir = self.base_dir / kind
        target_dir.mkdir(parents=True, exist_ok=True)
        filename = generate_filename(kind, extension)
        target = target_dir / filename

        written = 0
        async with aiofiles.open(target, "wb") as f:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_size:
                    break
                await f.write(chunk)

        if written > max_size:
            await aiofiles.os.remove(target)
            raise FileTooLargeError(written, max_size)

        logger.info(f"[Storage] Saved {upload.filename} as {kind}/{filename} ({written} bytes)")
        return f"{UPLOAD_URL_PREFIX}/{kind}/{filename}"

    async def delete(self, url: Optional[str]) -> bool:
        """Remove a file previously returned by save(); False if it is not ours or gone"""
        if not url or not url.startswith(f"{UPLOAD_URL_PREFIX}/"):
            return False
        path = self.base_dir / url[len(UPLOAD_URL_PREFIX) + 1:]
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            logger.debug(f"[Storage] File already gone: {path}")
            return False


storage_service = StorageService()
