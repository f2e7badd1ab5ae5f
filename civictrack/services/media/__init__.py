from .base import ImageUpload, MediaStore, ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES, MAX_IMAGES_PER_ISSUE
from .resolver import get_media_store, reset_media_store

__all__ = [
    "ImageUpload",
    "MediaStore",
    "ALLOWED_IMAGE_TYPES",
    "MAX_IMAGE_BYTES",
    "MAX_IMAGES_PER_ISSUE",
    "get_media_store",
    "reset_media_store",
]
