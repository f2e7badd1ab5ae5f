"""
Core settings and environment variables for CivicTrack.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


# Pagination caps are fixed constants, not runtime configuration
PUBLIC_MAX_LIMIT = 50
ADMIN_MAX_LIMIT = 100
PUBLIC_DEFAULT_LIMIT = 10
ADMIN_DEFAULT_LIMIT = 20

# Default search radius for nearby listings (meters)
DEFAULT_NEARBY_DISTANCE_METERS = 5000


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "CivicTrack"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API (comma separated)
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIREBASE_STORAGE_BUCKET: Optional[str] = None

    # Mock DB mode for local development without Firebase credentials
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: Optional[str] = None  # None keeps the mock purely in memory

    # Media store: "firebase" (Cloud Storage bucket) or "local" (filesystem)
    MEDIA_BACKEND: str = "firebase"
    MEDIA_ROOT: str = "./media"
    MEDIA_BASE_URL: str = "/media"

    # Geocoding (best-effort address enrichment)
    # - GEOCODING_PROVIDER: "nominatim" (default, no API key) or "google"
    # - GOOGLE_MAPS_API_KEY: only used when provider is "google"
    GEOCODING_ENABLED: bool = True
    GEOCODING_PROVIDER: str = "nominatim"
    GOOGLE_MAPS_API_KEY: Optional[str] = None

    # Moderation: distinct-reporter spam count at which an issue auto-hides
    SPAM_THRESHOLD: int = 3

    # Per-client request limits on issue creation and spam reports
    RATE_LIMITING_ENABLED: bool = True
    RATE_LIMIT_ISSUE_CREATE: str = "10/hour"
    RATE_LIMIT_SPAM_REPORT: str = "5/hour"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins_list(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
