"""
api/uploads.py -- Reading multipart profile picture uploads.

Shared by POST /auth/register and POST /users/{id}/profile-picture. The
actual validation and storage live in core/media.py; this module only bridges
FastAPI's UploadFile to it.
"""

from fastapi import UploadFile

from core.config import Settings
from core.media import store_profile_picture


async def save_profile_picture(upload: UploadFile, settings: Settings) -> str:
    """Validate and store upload. Returns the path relative to media_root.

    Reads at most max_upload_kb + 1 byte so an oversized file is rejected
    without buffering all of it.
    """
    raw = await upload.read(settings.max_upload_kb * 1024 + 1)
    return store_profile_picture(raw, settings.media_root, settings.max_upload_kb)
