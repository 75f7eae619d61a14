"""FastAPI application entry point."""

from fastapi import FastAPI
from sqlalchemy import text

from app.core.config import settings
from app.db.session import engine

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="NC Data API",
    description="Computed-column query engine and webhook dispatch",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# ============================================================================
# Routers
# ============================================================================

from app.routers import hooks

app.include_router(hooks.router, prefix="/hooks", tags=["hooks"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
