"""API routers for the study cycle tracker."""

from src.api.routers import (
    cycle_router,
    workspace_router,
)

__all__ = [
    "cycle_router",
    "workspace_router",
]
