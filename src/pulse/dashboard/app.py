"""FastAPI application factory for the creator dashboard JSON API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from pulse.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI dashboard application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        FastAPI application with the /api routes registered. Route handlers
        read their components (reconciler, cost_engine, preflight, ...)
        from app.state.
    """
    app = FastAPI(
        title="Pulse Creator Dashboard",
        lifespan=lifespan,
    )

    app.include_router(api.router, prefix="/api")

    return app
