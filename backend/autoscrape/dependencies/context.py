"""Request dependencies for FastAPI routes."""

from fastapi import HTTPException, Request

from autoscrape.context import AppContext


async def get_context(request: Request) -> AppContext:
    """Return the application's service context."""
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return ctx
