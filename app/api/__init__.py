"""API routes."""

from app.api.analysis import router as analysis_router
from app.api.extension import router as extension_router

__all__ = ["analysis_router", "extension_router"]
