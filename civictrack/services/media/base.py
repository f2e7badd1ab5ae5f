from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_IMAGES_PER_ISSUE = 5


class MediaStore(ABC):
    """
    Abstract store for issue images.

    Contract:
    - upload() takes raw bytes and returns a stable URL
    - delete() removes the object behind a URL it returned earlier
    - Both raise ExternalServiceError when the backend fails
    """

    name = "base"

    @abstractmethod
    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def delete(self, url: str) -> None:
        raise NotImplementedError


def extension_for(content_type: str, filename: str) -> str:
    if content_type in ALLOWED_IMAGE_TYPES:
        return ALLOWED_IMAGE_TYPES[content_type]
    if "." in (filename or ""):
        return "." + filename.rsplit(".", 1)[1].lower()
    return ""


@dataclass(frozen=True)
class ImageUpload:
    """One image attached to a new issue, already read into memory."""
    data: bytes
    filename: str
    content_type: str
