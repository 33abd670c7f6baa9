"""
Administrator attachment uploads.

Files are validated before anything is written: count, extension, declared
content type, size, and the type detected from the bytes with libmagic.
Accepted files are stored under the upload directory with randomized names
and referenced from complaints by their relative path.
"""

import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import magic
from fastapi import UploadFile

from core.async_utils import run_blocking
from core.config import settings
from core.exceptions import ValidationError

# Module-level logger using __name__
logger = logging.getLogger(__name__)

# Content type -> extensions it may be stored under
ALLOWED_CONTENT_TYPES: Dict[str, Tuple[str, ...]] = {
    "image/jpeg": ("jpg", "jpeg"),
    "image/png": ("png",),
    "application/pdf": ("pdf",),
}


@dataclass(frozen=True)
class PendingUpload:
    """An uploaded file that passed validation and has not been written yet."""

    original_name: str
    extension: str
    content: bytes


class UploadService:
    """Validate and persist administrator attachments."""

    @staticmethod
    async def validate(files: Sequence[UploadFile]) -> List[PendingUpload]:
        """
        Read and validate every upload. Nothing is written to disk.

        Raises:
            ValidationError: Too many files, bad type or oversize file
        """
        files = [f for f in files or [] if f is not None and f.filename]
        if len(files) > settings.file_upload.max_files:
            raise ValidationError(
                f"Too many files. Maximum is {settings.file_upload.max_files}"
            )

        pending: List[PendingUpload] = []
        for upload in files:
            name = Path(upload.filename).name
            ext = Path(name).suffix.lower().lstrip(".")
            if ext not in settings.file_upload.allowed_extensions:
                logger.warning(f"Rejected attachment with extension .{ext}: {name}")
                raise ValidationError(
                    "Invalid file type! Only JPEG, PNG, and PDF files are allowed."
                )

            content_type = (upload.content_type or "").lower()
            allowed_for_type = ALLOWED_CONTENT_TYPES.get(content_type)
            if allowed_for_type is not None and ext not in allowed_for_type:
                logger.warning(f"Rejected attachment {name}: .{ext} does not match {content_type}")
                raise ValidationError("File extension does not match file type")

            content = await upload.read()
            if len(content) > settings.file_upload.max_upload_size:
                max_mb = settings.file_upload.max_upload_size // (1024 * 1024)
                raise ValidationError(f"File size exceeds maximum of {max_mb} MB")

            # Detect MIME type from bytes; the declared type is client-controlled
            mime = magic.Magic(mime=True)
            detected = mime.from_buffer(content)
            if ext not in ALLOWED_CONTENT_TYPES.get(detected, ()):
                logger.warning(f"Rejected attachment {name}: content detected as {detected}")
                raise ValidationError("File content does not match file type")

            pending.append(PendingUpload(original_name=name, extension=ext, content=content))

        return pending

    @staticmethod
    def _write(directory: Path, filename: str, content: bytes) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / filename).write_bytes(content)

    @staticmethod
    async def save(pending: Sequence[PendingUpload]) -> List[str]:
        """
        Write validated uploads off the event loop.

        Returns:
            Relative paths ("uploads/<random>.<ext>") in upload order
        """
        directory = Path(settings.file_upload.upload_dir)
        paths: List[str] = []
        for item in pending:
            filename = f"{secrets.token_hex(16)}.{item.extension}"
            await run_blocking(UploadService._write, directory, filename, item.content)
            paths.append(f"{directory.name}/{filename}")
            logger.info(f"Stored attachment {item.original_name} as {filename}")
        return paths

    @staticmethod
    def _remove(directory: Path, filename: str) -> None:
        (directory / filename).unlink(missing_ok=True)

    @staticmethod
    async def discard(paths: Sequence[str]) -> None:
        """Delete stored attachments whose complaint update did not commit."""
        directory = Path(settings.file_upload.upload_dir)
        for path in paths:
            filename = Path(path).name
            try:
                await run_blocking(UploadService._remove, directory, filename)
                logger.info(f"Discarded orphaned attachment {filename}")
            except OSError as e:
                logger.error(f"Failed to discard attachment {filename}: {e}")
