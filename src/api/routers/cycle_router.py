"""
Study cycle router.

Endpoints for:
- Cycle CRUD and activation
- Advancing the rotation (optionally force-completing the current subject)
- Resetting progress
- Suggestion, statistics and history read views

Mounted under /api/workspaces/{workspace_id}/cycle. Every endpoint first
checks the caller owns the workspace.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import get_settings
from src.api.dependencies import get_cycle_engine, get_workspace_id
from src.cycle import CycleEngine, CyclePatch, ItemSpec

settings = get_settings()

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class CycleItemRequest(BaseModel):
    """One slot of a cycle."""

    subject_id: str = Field(..., description="Subject ID")
    target_minutes: int = Field(..., ge=1, le=settings.target_minutes_max, description="Target minutes")

    def to_spec(self) -> ItemSpec:
        return ItemSpec(subject_id=self.subject_id, target_minutes=self.target_minutes)


class CycleCreateRequest(BaseModel):
    """Request model for creating a cycle."""

    name: Optional[str] = Field(None, max_length=settings.cycle_name_max_length)
    items: List[CycleItemRequest] = Field(..., min_length=1)
    activate_on_create: bool = Field(False, description="Make this the active cycle")


class CycleUpdateRequest(BaseModel):
    """Request model for updating a cycle. Omitted fields are left untouched."""

    name: Optional[str] = Field(None, max_length=settings.cycle_name_max_length)
    is_active: Optional[bool] = None
    current_item_index: Optional[int] = Field(None, ge=0)
    items: Optional[List[CycleItemRequest]] = Field(None, min_length=1)


class AdvanceRequest(BaseModel):
    force_complete: bool = Field(False, description="Credit the missing minutes to the current subject")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CycleItemResponse(ORMModel):
    id: str
    subject_id: str
    subject_name: str
    target_minutes: int
    position: int
    compensation_minutes: int


class ItemProgressResponse(ORMModel):
    position: int
    subject_id: str
    subject_name: str
    target_minutes: int
    session_minutes: int
    compensation_minutes: int
    accumulated_minutes: int
    remaining_minutes: int
    is_complete: bool


class CycleResponse(ORMModel):
    id: str
    workspace_id: str
    name: Optional[str]
    is_active: bool
    current_item_index: int
    display_order: int
    last_reset_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    items: List[CycleItemResponse]
    progress: List[ItemProgressResponse] = Field(default_factory=list)


class AdvanceResponse(ORMModel):
    cycle: CycleResponse
    previous_subject: str
    new_subject: str
    from_position: int
    to_position: int
    minutes_spent: int
    compensated_minutes: int
    cycle_completed: bool


class SuggestionDetailResponse(ORMModel):
    current_subject: str
    current_subject_id: str
    current_target_minutes: int
    current_accumulated_minutes: int
    remaining_minutes: int
    is_current_complete: bool
    next_subject: str
    next_subject_id: str
    next_target_minutes: int
    current_position: int
    total_items: int
    all_items_progress: List[ItemProgressResponse]
    is_cycle_complete: bool


class SuggestionResponse(ORMModel):
    has_cycle: bool
    is_empty: bool = False
    cycle_id: Optional[str] = None
    cycle_name: Optional[str] = None
    suggestion: Optional[SuggestionDetailResponse] = None


class StatisticsResponse(ORMModel):
    cycle_id: str
    cycle_name: Optional[str]
    total_target_minutes: int
    total_accumulated_minutes: int
    completed_items_count: int
    total_items_count: int
    overall_percentage: int
    average_per_item: int


class HistoryEntryResponse(ORMModel):
    type: Literal["advance", "completion"]
    id: str
    created_at: datetime
    from_subject: Optional[str] = None
    to_subject: Optional[str] = None
    from_position: Optional[int] = None
    to_position: Optional[int] = None
    minutes_spent: Optional[int] = None
    cycle_name: Optional[str] = None
    total_target_minutes: Optional[int] = None
    total_spent_minutes: Optional[int] = None
    items_count: Optional[int] = None
    completion_number: Optional[int] = None


class HistoryResponse(ORMModel):
    cycle_id: str
    entries: List[HistoryEntryResponse]
    total_advances: int
    total_completions: int


# ========================================
# Read Endpoints
# ========================================


@router.get("", response_model=Optional[CycleResponse], summary="Get active cycle")
def get_active_cycle(
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    """Return the workspace's active cycle with progress, or null."""
    cycle = engine.get_active_cycle(workspace_id)
    return CycleResponse.model_validate(cycle) if cycle else None


@router.get("/list", response_model=List[CycleResponse], summary="List cycles")
def list_cycles(
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    """All cycles, active first, then display order."""
    return [CycleResponse.model_validate(c) for c in engine.list_cycles(workspace_id)]


@router.get("/suggestion", response_model=SuggestionResponse, summary="Current study suggestion")
def get_suggestion(
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    return SuggestionResponse.model_validate(engine.get_suggestion(workspace_id))


@router.get("/statistics", response_model=Optional[StatisticsResponse], summary="Cycle statistics")
def get_statistics(
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    stats = engine.get_statistics(workspace_id)
    return StatisticsResponse.model_validate(stats) if stats else None


@router.get("/history", response_model=Optional[HistoryResponse], summary="Advance and completion history")
def get_history(
    limit: Optional[int] = Query(None, ge=1, le=settings.history_max_limit),
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    history = engine.get_history(workspace_id, limit=limit or settings.history_default_limit)
    return HistoryResponse.model_validate(history) if history else None


# ========================================
# Mutation Endpoints
# ========================================


@router.post("", response_model=CycleResponse, status_code=201, summary="Create cycle")
def create_cycle(
    request: CycleCreateRequest,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    """
    Create a cycle. The first cycle in a workspace is activated automatically;
    later ones only with activate_on_create.
    """
    logger.info(f"Creating cycle {request.name!r} with {len(request.items)} items in {workspace_id}")
    cycle = engine.create_cycle(
        workspace_id,
        request.name,
        [item.to_spec() for item in request.items],
        activate_on_create=request.activate_on_create,
    )
    return CycleResponse.model_validate(cycle)


@router.post("/advance", response_model=AdvanceResponse, summary="Advance to next subject")
def advance_to_next(
    request: Optional[AdvanceRequest] = None,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    force = request.force_complete if request else False
    return AdvanceResponse.model_validate(engine.advance_to_next(workspace_id, force_complete=force))


@router.post("/reset", response_model=CycleResponse, summary="Reset cycle progress")
def reset_cycle(
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    """Zero compensation, move to the first subject, and ignore sessions logged before now."""
    return CycleResponse.model_validate(engine.reset_cycle(workspace_id))


@router.post("/{cycle_id}/activate", response_model=CycleResponse, summary="Activate cycle")
def activate_cycle(
    cycle_id: str,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    return CycleResponse.model_validate(engine.activate_cycle(workspace_id, cycle_id))


@router.put("/{cycle_id}", response_model=CycleResponse, summary="Update cycle")
def update_cycle(
    cycle_id: str,
    request: CycleUpdateRequest,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    patch = CyclePatch(
        name=request.name,
        is_active=request.is_active,
        current_item_index=request.current_item_index,
        items=[item.to_spec() for item in request.items] if request.items is not None else None,
    )
    return CycleResponse.model_validate(engine.update_cycle(workspace_id, cycle_id, patch))


@router.delete("/{cycle_id}", status_code=204, summary="Delete cycle")
def delete_cycle(
    cycle_id: str,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    engine.delete_cycle(workspace_id, cycle_id)
    return Response(status_code=204)


@router.get("/{cycle_id}", response_model=CycleResponse, summary="Get cycle")
def get_cycle(
    cycle_id: str,
    workspace_id: str = Depends(get_workspace_id),
    engine: CycleEngine = Depends(get_cycle_engine),
):
    return CycleResponse.model_validate(engine.get_cycle(workspace_id, cycle_id))
