"""
Request rate limits for write-heavy public endpoints.

Limits are per client IP, held in memory:
    - Issue creation: RATE_LIMIT_ISSUE_CREATE (default 10/hour)
    - Spam reports: RATE_LIMIT_SPAM_REPORT (default 5/hour)

Disable with RATE_LIMITING_ENABLED=false. Exceeded limits surface as the
RateLimited error (HTTP 429).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from civictrack.core.settings import settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMITING_ENABLED,
    storage_uri="memory://",
)

RATE_LIMIT_ISSUE_CREATE = settings.RATE_LIMIT_ISSUE_CREATE
RATE_LIMIT_SPAM_REPORT = settings.RATE_LIMIT_SPAM_REPORT
