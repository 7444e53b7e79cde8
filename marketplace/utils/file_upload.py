"""
File Upload Utility - validate uploaded files before they are stored.

Portfolios: PDF, Word, plain text, images
Verification documents: PDF and images

Max file size comes from settings (5MB by default).
"""

from typing import Tuple
from fastapi import UploadFile

from marketplace.core.config import get_settings
from marketplace.core.errors import ValidationError


ALLOWED_EXTENSIONS = {
    "portfolios": {'.pdf', '.doc', '.docx', '.txt', '.png', '.jpg', '.jpeg'},
    "verification": {'.pdf', '.png', '.jpg', '.jpeg'},
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def validate_upload(filename: str, content: bytes, category: str) -> str:
    """
    Check name, extension and size. Returns the extension (with dot).

    Raises:
        ValidationError on any violation
    """
    settings = get_settings()

    if not filename:
        raise ValidationError("No filename provided")

    ext = get_file_extension(filename)
    allowed = ALLOWED_EXTENSIONS[category]
    if ext not in allowed:
        raise ValidationError(
            f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(allowed))}"
        )

    if not content:
        raise ValidationError("File is empty")

    if len(content) > settings.max_upload_bytes:
        raise ValidationError(f"File too large. Maximum size: {settings.max_upload_mb}MB")

    return ext


async def read_upload(file: UploadFile, category: str) -> Tuple[bytes, str, str]:
    """
    Read and validate a FastAPI upload.

    Returns:
        Tuple of (content, original filename, extension)
    """
    content = await file.read()
    ext = validate_upload(file.filename or "", content, category)
    return content, file.filename, ext


def get_supported_formats() -> dict:
    """Get info about supported file formats per category."""
    settings = get_settings()
    return {
        "categories": {name: sorted(exts) for name, exts in ALLOWED_EXTENSIONS.items()},
        "max_size_mb": settings.max_upload_mb
    }
