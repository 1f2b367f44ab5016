"""Authentication for scheduler-triggered job endpoints.

Two schemes are accepted:

* ``Authorization: Bearer <CRON_SECRET>`` without a timestamp header (legacy);
* ``Authorization: HMAC <hex sha256(timestamp)>`` plus ``X-Cron-Timestamp``
  (milliseconds since epoch), valid for five minutes either side of now.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass

from bonlog.config import settings

logger = logging.getLogger(__name__)

TIMESTAMP_TOLERANCE_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class CronAuthResult:
    valid: bool
    error: str | None = None


def generate_cron_signature(timestamp: str, secret: str) -> str:
    return hmac.new(secret.encode(), timestamp.encode(), hashlib.sha256).hexdigest()


def generate_cron_headers(secret: str | None = None) -> dict[str, str]:
    """Headers a scheduler sends to call a cron endpoint."""
    secret = secret or settings.cron_secret
    if not secret:
        raise RuntimeError("CRON_SECRET is not set")
    timestamp = str(int(time.time() * 1000))
    return {
        "authorization": f"HMAC {generate_cron_signature(timestamp, secret)}",
        "x-cron-timestamp": timestamp,
    }


def verify_cron_auth(
    auth_header: str | None,
    timestamp_header: str | None,
    *,
    secret: str | None = None,
    production: bool | None = None,
    now_ms: int | None = None,
) -> CronAuthResult:
    """Check a cron request's Authorization and timestamp headers."""
    secret = settings.cron_secret if secret is None else secret
    production = settings.is_production if production is None else production

    if not secret:
        if production:
            return CronAuthResult(False, "CRON_SECRET is not configured")
        logger.warning("CRON_SECRET is not set. Cron authentication is disabled.")
        return CronAuthResult(True)

    if auth_header == f"Bearer {secret}" and not timestamp_header:
        if production:
            logger.warning("Cron job authenticated with legacy Bearer token")
        return CronAuthResult(True)

    if not auth_header or not auth_header.startswith("HMAC "):
        return CronAuthResult(False, "Invalid authorization scheme")

    if not timestamp_header:
        return CronAuthResult(False, "Missing timestamp header")

    try:
        timestamp = int(timestamp_header)
    except ValueError:
        return CronAuthResult(False, "Invalid timestamp format")

    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    if abs(now_ms - timestamp) > TIMESTAMP_TOLERANCE_MS:
        return CronAuthResult(False, "Request timestamp is too old or too far in the future")

    provided = auth_header[len("HMAC "):]
    expected = generate_cron_signature(timestamp_header, secret)
    if not hmac.compare_digest(provided, expected):
        return CronAuthResult(False, "Invalid signature")

    return CronAuthResult(True)
