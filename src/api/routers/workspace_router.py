"""
Workspace router: workspaces, subjects and study session logging.

These are the records the cycle engine reads from. Plain create/read
endpoints; the only rules are ownership and positive session minutes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from src.api.dependencies import get_current_user, get_workspace_id, get_workspace_service
from src.cycle import WorkspaceService

router = APIRouter()


class WorkspaceCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class SubjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class SessionCreateRequest(BaseModel):
    subject_id: str
    minutes: int = Field(..., ge=1, le=1440)
    logged_at: Optional[datetime] = Field(None, description="Defaults to now (UTC)")


class WorkspaceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    created_at: datetime


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    name: str


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    subject_id: str
    minutes: int
    logged_at: datetime


@router.post("", response_model=WorkspaceResponse, status_code=201)
def create_workspace(
    request: WorkspaceCreateRequest,
    user_id: str = Depends(get_current_user),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    return WorkspaceResponse.model_validate(workspaces.create_workspace(user_id, request.name))


@router.get("", response_model=List[WorkspaceResponse])
def list_workspaces(
    user_id: str = Depends(get_current_user),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    return [WorkspaceResponse.model_validate(ws) for ws in workspaces.list_workspaces(user_id)]


@router.post("/{workspace_id}/subjects", response_model=SubjectResponse, status_code=201)
def add_subject(
    request: SubjectCreateRequest,
    workspace_id: str = Depends(get_workspace_id),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    return SubjectResponse.model_validate(workspaces.add_subject(workspace_id, request.name))


@router.get("/{workspace_id}/subjects", response_model=List[SubjectResponse])
def list_subjects(
    workspace_id: str = Depends(get_workspace_id),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    return [SubjectResponse.model_validate(s) for s in workspaces.list_subjects(workspace_id)]


@router.post("/{workspace_id}/sessions", response_model=SessionResponse, status_code=201)
def log_session(
    request: SessionCreateRequest,
    workspace_id: str = Depends(get_workspace_id),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    record = workspaces.log_session(workspace_id, request.subject_id, request.minutes, request.logged_at)
    return SessionResponse.model_validate(record)


@router.get("/{workspace_id}/sessions/totals", response_model=Dict[str, int])
def session_totals(
    since: Optional[datetime] = Query(None, description="Only count sessions at or after this instant"),
    workspace_id: str = Depends(get_workspace_id),
    workspaces: WorkspaceService = Depends(get_workspace_service),
):
    """Minutes per subject_id."""
    return workspaces.subject_totals(workspace_id, since=since)
