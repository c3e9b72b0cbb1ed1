"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, status

from app.config import get_settings
from app.db.session import get_db  # re-export

logger = logging.getLogger(__name__)

__all__ = [
    "get_db",
    "require_extension_api_key",
]


def require_extension_api_key(x_api_key: str | None = Header(None)) -> None:
    """Check ``X-API-Key`` for extension routes.

    Skipped when ``EXTENSION_REQUIRE_API_KEY`` is off. Constant-time comparison;
    401 when the key is missing, wrong, or not configured.
    """
    settings = get_settings()
    if not settings.extension_require_api_key:
        return
    expected = settings.extension_api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        logger.warning("Extension API auth failed: invalid or missing API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
