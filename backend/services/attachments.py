"""Chat attachment storage and zip packaging for downloads."""

import io
import logging
import re
import uuid
import zipfile
from pathlib import Path

from fastapi import UploadFile

import settings
from models.chat import AttachmentInfo
from services.errors import InvalidInput, NotFound

logger = logging.getLogger("campus.attachments")

ALLOWED_EXTENSIONS = frozenset(
    {
        "pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "txt", "md", "csv",
        "jpg", "jpeg", "png", "gif", "webp",
        "zip", "rar", "7z",
        "mp3", "mp4", "avi", "mov", "wmv",
    }
)  # fmt: skip

CHUNK_SIZE = 64 * 1024


def chat_dir() -> Path:
    path = settings.UPLOAD_DIR / "chat"
    path.mkdir(parents=True, exist_ok=True)
    return path


def extension_of(filename: str) -> str:
    return Path(filename).suffix.lower().lstrip(".")


def sanitize_filename(filename: str) -> str:
    """Download name for an archive: safe characters only, always ending in .zip

    >>> sanitize_filename("lab (final).pdf")
    'lab final.pdf.zip'
    >>> sanitize_filename("../../etc/passwd")
    '....etcpasswd.zip'
    >>> sanitize_filename("???")
    'attachment.zip'
    """
    cleaned = re.sub(r"[^A-Za-z0-9\s\-_.]", "", filename or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned.strip("."):
        cleaned = "attachment"
    if not cleaned.lower().endswith(".zip"):
        cleaned = f"{cleaned}.zip"
    return cleaned


async def store_upload(upload: UploadFile) -> AttachmentInfo:
    """Write an uploaded file under the chat folder, enforcing type and size."""
    original_name = Path(upload.filename or "").name
    if not original_name:
        raise InvalidInput("Attachment must have a file name")

    extension = extension_of(original_name)
    if extension not in ALLOWED_EXTENSIONS:
        raise InvalidInput(
            f"File type .{extension} is not allowed for chat attachments"
        )

    target = chat_dir() / f"{uuid.uuid4()}.{extension}"
    size = 0
    try:
        with target.open("wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > settings.MAX_FILE_SIZE:
                    raise InvalidInput(
                        f"File too large, the limit is {settings.MAX_FILE_SIZE} bytes"
                    )
                out.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    logger.debug(f"Stored attachment {original_name!r} as {target.name} ({size} B)")
    return AttachmentInfo(
        path=str(target),
        original_name=original_name,
        size=size,
        mime_type=upload.content_type,
    )


def discard(attachment: AttachmentInfo | None) -> None:
    if attachment is None:
        return
    try:
        Path(attachment.path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove orphan attachment {attachment.path}: {e}")


def build_archive(path: str | Path, original_name: str) -> bytes:
    """Wrap a stored file in a single-entry zip under its original name.

    The whole archive is built before anything is sent, so a failure here
    still lets the handler answer with a regular error response.
    """
    source = Path(path)
    if not source.is_file():
        raise NotFound("Attachment file not found")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.write(source, arcname=Path(original_name).name or source.name)
    return buffer.getvalue()
