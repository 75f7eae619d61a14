"""API routers."""

from app.routers.hooks import router as hooks_router

__all__ = ["hooks_router"]
