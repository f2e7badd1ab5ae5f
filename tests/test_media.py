import pytest
from google.api_core import exceptions as gexc

from civictrack.core.errors import ExternalServiceError
from civictrack.core.settings import settings
from civictrack.services.media import get_media_store, reset_media_store
from civictrack.services.media.firebase_store import FirebaseStorageMediaStore
from civictrack.services.media.local_store import LocalMediaStore


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.public_url = f"https://storage.googleapis.com/{bucket.name}/{name}"

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail:
            raise gexc.ServiceUnavailable("bucket down")
        self.bucket.objects[self.name] = data

    def make_public(self):
        pass

    def delete(self):
        if self.name not in self.bucket.objects:
            raise gexc.NotFound("no such object")
        del self.bucket.objects[self.name]


class FakeBucket:
    name = "civictrack-test"

    def __init__(self):
        self.objects = {}
        self.fail = False

    def blob(self, name):
        return FakeBlob(self, name)


def test_local_store_round_trip(tmp_path):
    store = LocalMediaStore(str(tmp_path), "/media/")
    url = store.upload(b"data", "photo.png", "image/png")

    assert url.startswith("/media/") and url.endswith(".png")
    assert len(list(tmp_path.iterdir())) == 1

    store.delete(url)
    assert list(tmp_path.iterdir()) == []
    # Deleting twice is not an error
    store.delete(url)


def test_firebase_store_upload_and_delete():
    bucket = FakeBucket()
    store = FirebaseStorageMediaStore(bucket)

    url = store.upload(b"data", "photo.jpg", "image/jpeg")
    [name] = bucket.objects
    assert name.startswith("issues/") and name.endswith(".jpg")
    assert url.endswith(name)

    store.delete(url)
    assert bucket.objects == {}
    store.delete(url)


def test_firebase_store_wraps_upload_errors():
    bucket = FakeBucket()
    bucket.fail = True

    with pytest.raises(ExternalServiceError) as exc_info:
        FirebaseStorageMediaStore(bucket).upload(b"data", "photo.png", "image/png")
    assert exc_info.value.service == "media"


def test_mock_mode_resolves_to_local_store(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    reset_media_store()
    try:
        assert get_media_store().name == "local"
    finally:
        reset_media_store()
