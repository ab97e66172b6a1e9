# Overview: Object storage for uploaded images (item pictures, avatars).

"""
Uploads go to Cloudinary and come back as a secure URL. The URL is what gets
stored on the item or user row; the bytes never touch the database.
"""

from __future__ import annotations

import logging
from typing import Protocol

import cloudinary
import cloudinary.uploader
from werkzeug.datastructures import FileStorage

from ..errors import UploadFailure, ValidationError


logger = logging.getLogger(__name__)

FOLDER_ITEMS = "items"
FOLDER_AVATARS = "avatars"


class ObjectStorage(Protocol):
    def upload(self, data: bytes, folder: str) -> str:
        ...


class CloudinaryStorage:
    def __init__(self, cloud_name: str | None, api_key: str | None, api_secret: str | None):
        self._settings = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }
        self._configured = False

    def _configure(self):
        if not self._configured:
            cloudinary.config(secure=True, **self._settings)
            self._configured = True

    def upload(self, data: bytes, folder: str) -> str:
        if not all(self._settings.values()):
            logger.error("Cloudinary credentials are not configured")
            raise UploadFailure()

        self._configure()
        try:
            result = cloudinary.uploader.upload(data, folder=folder, resource_type="image")
        except Exception as e:
            logger.exception("Cloudinary upload failed (folder=%s)", folder)
            raise UploadFailure() from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            logger.error("Cloudinary returned no URL (folder=%s)", folder)
            raise UploadFailure()
        return url


def read_image_upload(file: FileStorage | None, max_bytes: int) -> bytes:
    """
    Validate a multipart image part and return its bytes.

    Only image/* mimetypes up to max_bytes are accepted.
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    if not (file.mimetype or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")

    data = file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"File too large (max {max_bytes // (1024 * 1024)}MB)")
    if not data:
        raise ValidationError("Uploaded file is empty")
    return data
