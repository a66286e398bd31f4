"""
FastAPI dependencies shared by the routers.

The engine and workspace service are process-wide singletons so every
request shares one lock registry. Tests swap them via
`app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, Path

from src.cycle import CycleEngine, WorkspaceService


@lru_cache(maxsize=1)
def get_cycle_engine() -> CycleEngine:
    """Engine bound to the application database."""
    return CycleEngine()


@lru_cache(maxsize=1)
def get_workspace_service() -> WorkspaceService:
    return WorkspaceService()


def get_current_user(x_user_id: str = Header(..., description="Authenticated user id")) -> str:
    """Caller identity; authentication itself happens upstream of this service."""
    return x_user_id


def get_workspace_id(
    workspace_id: str = Path(..., description="Workspace ID"),
    user_id: str = Depends(get_current_user),
    workspaces: WorkspaceService = Depends(get_workspace_service),
) -> str:
    """Resolve the path workspace after checking the caller owns it."""
    workspaces.verify_access(user_id, workspace_id)
    return workspace_id
