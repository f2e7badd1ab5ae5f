import logging
from typing import Optional

from civictrack.core.settings import settings
from .base import MediaStore
from .local_store import LocalMediaStore

logger = logging.getLogger(__name__)

_store_instance: Optional[MediaStore] = None


def get_media_store() -> MediaStore:
    """
    Resolve the active media store based on settings.

    MEDIA_BACKEND=local, or mock DB mode, keeps images on disk;
    otherwise they go to the Firebase Storage bucket.
    """
    global _store_instance
    if _store_instance is not None:
        return _store_instance

    backend = (settings.MEDIA_BACKEND or "firebase").lower()
    if backend == "local" or settings.USE_MOCK_DB:
        _store_instance = LocalMediaStore(settings.MEDIA_ROOT, settings.MEDIA_BASE_URL)
    else:
        from civictrack.config.firebase import get_bucket
        from .firebase_store import FirebaseStorageMediaStore
        _store_instance = FirebaseStorageMediaStore(get_bucket())

    logger.info(f"Media store initialized: {_store_instance.name}")
    return _store_instance


def reset_media_store() -> None:
    global _store_instance
    _store_instance = None
