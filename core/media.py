"""
core/media.py -- Profile picture validation and storage.

Uploads are checked in three steps before anything touches the disk:
  1. Size: at most max_upload_kb kilobytes (2048 by default).
  2. Content: Pillow must be able to open and verify the bytes as an image.
     The client-supplied filename and content type are not trusted.
  3. Format: only the formats in _EXTENSIONS are accepted.

Stored files get a random name under <media_root>/profile_pictures/, and the
path returned is relative to media_root so the DB never holds absolute paths.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import io
import logging
import secrets
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from core.errors import ValidationFailed

logger = logging.getLogger("accountkit.media")

PROFILE_PICTURE_DIR = "profile_pictures"

# Pillow format name -> stored file extension
_EXTENSIONS: dict[str, str] = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "BMP": "bmp",
    "WEBP": "webp",
}


def detect_image_extension(data: bytes, max_kb: int) -> str:
    """Return the file extension for data, or raise ValidationFailed."""
    if not data:
        raise ValidationFailed("profile_picture must not be empty.")
    if len(data) > max_kb * 1024:
        raise ValidationFailed(f"profile_picture must be {max_kb} KB or smaller.")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise ValidationFailed("profile_picture must be an image.") from exc

    ext = _EXTENSIONS.get(fmt or "")
    if ext is None:
        raise ValidationFailed(f"profile_picture must be one of: {', '.join(sorted(_EXTENSIONS.values()))}.")
    return ext


def store_profile_picture(data: bytes, media_root: Path, max_kb: int) -> str:
    """Validate and write an uploaded picture. Returns the relative path."""
    ext = detect_image_extension(data, max_kb)
    target_dir = Path(media_root) / PROFILE_PICTURE_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{secrets.token_hex(16)}.{ext}"
    (target_dir / name).write_bytes(data)
    logger.info("Stored profile picture %s (%d bytes)", name, len(data))
    return f"{PROFILE_PICTURE_DIR}/{name}"


def delete_media(relative_path: str | None, media_root: Path) -> None:
    """Remove a previously stored file. Missing files are ignored.

    Only paths inside media_root are deleted, so a tampered DB value cannot
    point the unlink at an arbitrary file.
    """
    if not relative_path:
        return
    root = Path(media_root).resolve()
    target = (root / relative_path).resolve()
    if root not in target.parents:
        logger.warning("Refusing to delete media outside media_root: %r", relative_path)
        return
    target.unlink(missing_ok=True)
