"""
Firebase initialization.
Single-source-of-truth Firestore client and Storage bucket for CivicTrack.
"""

import json
import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app, storage
from google.auth.exceptions import GoogleAuthError

from civictrack.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[firestore.Client] = None

_REQUIRED_CREDENTIAL_FIELDS = ("type", "project_id", "private_key", "client_email")


def _load_credentials(cred_path: str) -> credentials.Certificate:
    """Validate a service account file before handing it to the Admin SDK."""
    if not os.path.exists(cred_path):
        raise FileNotFoundError(
            f"Firebase credentials file not found: {cred_path}\n"
            f"Check FIREBASE_CREDENTIALS_PATH in your .env file. "
            f"Current working directory: {os.getcwd()}"
        )

    try:
        with open(cred_path, "r") as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Firebase credentials file is not valid JSON: {e}")

    missing_fields = [field for field in _REQUIRED_CREDENTIAL_FIELDS if field not in cred_data]
    if missing_fields:
        raise ValueError(
            f"Firebase credentials file is missing required fields: {missing_fields}\n"
            f"Download a fresh service account key from the Firebase Console."
        )

    logger.info(f"[FIRESTORE] Credentials file validated for project {cred_data.get('project_id')}")
    return credentials.Certificate(cred_path)


def _ensure_app() -> None:
    if firebase_admin._apps:
        return

    options = {}
    if settings.FIREBASE_STORAGE_BUCKET:
        options["storageBucket"] = settings.FIREBASE_STORAGE_BUCKET
    if settings.FIREBASE_PROJECT_ID:
        options["projectId"] = settings.FIREBASE_PROJECT_ID

    if settings.FIREBASE_CREDENTIALS_PATH:
        initialize_app(_load_credentials(settings.FIREBASE_CREDENTIALS_PATH), options or None)
        logger.info("[FIRESTORE] Firebase Admin SDK initialized with service account")
    else:
        logger.info("[FIRESTORE] No credentials path set, using Application Default Credentials")
        initialize_app(options=options or None)


def initialize_firestore():
    """
    Initialize the document store.

    Returns the in-memory MockFirestore when USE_MOCK_DB is set,
    otherwise a real Firestore client.
    """
    global db

    if db is not None:
        return db

    if settings.USE_MOCK_DB:
        from civictrack.config.mock_firestore import get_mock_db
        db = get_mock_db(settings.MOCK_DB_PATH)
        logger.info("[FIRESTORE] USING MOCK DATABASE")
        return db

    try:
        _ensure_app()
        db = firestore.client()
    except FileNotFoundError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - credentials file not found.\n{e}"
        ) from e
    except ValueError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - invalid credentials file.\n{e}"
        ) from e
    except GoogleAuthError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - no usable Google credentials.\n{e}"
        ) from e

    logger.info(f"[FIRESTORE] USING REAL FIRESTORE DATABASE (project: {settings.FIREBASE_PROJECT_ID or 'default'})")
    return db


def get_db():
    """
    Get the initialized document store.

    Raises RuntimeError if the store cannot be initialized.
    """
    if db is None:
        try:
            initialize_firestore()
        except Exception as e:
            raise RuntimeError(
                f"Firestore not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            ) from e
    return db


def get_bucket():
    """Cloud Storage bucket used by the Firebase media store."""
    _ensure_app()
    return storage.bucket(settings.FIREBASE_STORAGE_BUCKET)
