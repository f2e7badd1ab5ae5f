import logging
import os
import uuid

from civictrack.core.errors import ExternalServiceError
from .base import MediaStore, extension_for

logger = logging.getLogger(__name__)


class LocalMediaStore(MediaStore):
    """Images on the local filesystem, for development and mock mode."""

    name = "local"

    def __init__(self, root: str, base_url: str):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        name = f"{uuid.uuid4().hex}{extension_for(content_type, filename)}"
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(os.path.join(self.root, name), "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Saving image {name} failed: {e}")
            raise ExternalServiceError("media", "Image upload failed")
        logger.info(f"Stored image {name} ({len(data)} bytes)")
        return f"{self.base_url}/{name}"

    def delete(self, url: str) -> None:
        name = os.path.basename(url)
        path = os.path.join(self.root, name)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Image {name} was already gone")
            return
        except OSError as e:
            logger.error(f"Deleting image {name} failed: {e}")
            raise ExternalServiceError("media", "Image delete failed")
        logger.info(f"Deleted image {name}")
