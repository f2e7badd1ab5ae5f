import logging
import uuid
from urllib.parse import unquote, urlparse

from google.api_core import exceptions as gexc

from civictrack.core.errors import ExternalServiceError
from .base import MediaStore, extension_for

logger = logging.getLogger(__name__)


class FirebaseStorageMediaStore(MediaStore):
    """
    Images in the Firebase Cloud Storage bucket, served by public URL.

    Objects live under issues/<uuid><ext>.
    """

    name = "firebase"
    PREFIX = "issues"

    def __init__(self, bucket):
        self.bucket = bucket

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        blob_name = f"{self.PREFIX}/{uuid.uuid4().hex}{extension_for(content_type, filename)}"
        try:
            blob = self.bucket.blob(blob_name)
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except gexc.GoogleAPIError as e:
            logger.error(f"Image upload to {blob_name} failed: {e}")
            raise ExternalServiceError("media", "Image upload failed")
        logger.info(f"Uploaded image {blob_name} ({len(data)} bytes)")
        return blob.public_url

    def _blob_name(self, url: str) -> str:
        # https://storage.googleapis.com/<bucket>/<blob name>
        path = unquote(urlparse(url).path).lstrip("/")
        prefix = f"{self.bucket.name}/"
        return path[len(prefix):] if path.startswith(prefix) else path

    def delete(self, url: str) -> None:
        blob_name = self._blob_name(url)
        try:
            self.bucket.blob(blob_name).delete()
        except gexc.NotFound:
            logger.warning(f"Image {blob_name} was already gone")
            return
        except gexc.GoogleAPIError as e:
            logger.error(f"Image delete of {blob_name} failed: {e}")
            raise ExternalServiceError("media", "Image delete failed")
        logger.info(f"Deleted image {blob_name}")
