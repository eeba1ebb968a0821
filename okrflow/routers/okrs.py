from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from okrflow.models.okr import OKRStatus
from okrflow.models.user import User
from okrflow.routers.auth_deps import get_current_user, get_lifecycle
from okrflow.schemas.okr import (
    CCFeedbackResponse,
    FeedbackCreate,
    OKRCreate,
    OKRResponse,
    OKRSummary,
    OKRUpdate,
    ReasonRequest,
    VersionedRequest,
)
from okrflow.services.okr_lifecycle import OKRLifecycleService

router = APIRouter(prefix="/okrs", tags=["OKRs"])


@router.get("/", response_model=List[OKRSummary])
def list_okrs(
    owner_id: Optional[int] = None,
    department: Optional[str] = None,
    status_filter: Optional[OKRStatus] = Query(None, alias="status"),
    archived: Optional[bool] = None,
    mine: bool = False,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    if mine:
        owner_id = current_user.id
    return lifecycle.list_okrs(
        owner_id=owner_id,
        department=department,
        status=status_filter.value if status_filter else None,
        archived=archived,
    )


@router.post("/", response_model=OKRResponse, status_code=status.HTTP_201_CREATED)
def create_okr(
    payload: OKRCreate,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.create_okr(current_user, payload)


@router.get("/{okr_id}", response_model=OKRResponse)
def get_okr(
    okr_id: int,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.get_okr(okr_id)


@router.patch("/{okr_id}", response_model=OKRResponse)
def update_okr(
    okr_id: int,
    payload: OKRUpdate,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.update_okr(current_user, okr_id, payload)


@router.delete("/{okr_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_okr(
    okr_id: int,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    lifecycle.delete_okr(current_user, okr_id)


# --- creation workflow ---

@router.post("/{okr_id}/submit", response_model=OKRResponse)
def submit_okr(
    okr_id: int,
    payload: VersionedRequest = VersionedRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.submit(current_user, okr_id, payload.expected_version)


@router.post("/{okr_id}/approve", response_model=OKRResponse)
def approve_creation(
    okr_id: int,
    payload: VersionedRequest = VersionedRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.approve_creation(current_user, okr_id, payload.expected_version)


@router.post("/{okr_id}/reject", response_model=OKRResponse)
def reject_creation(
    okr_id: int,
    payload: ReasonRequest = ReasonRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.reject_creation(current_user, okr_id, payload.reason, payload.expected_version)


@router.post("/{okr_id}/revoke", response_model=OKRResponse)
def admin_revoke(
    okr_id: int,
    payload: ReasonRequest = ReasonRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.admin_revoke(current_user, okr_id, payload.reason)


# --- collaborator feedback ---

@router.put("/{okr_id}/feedback", response_model=CCFeedbackResponse)
def add_feedback(
    okr_id: int,
    payload: FeedbackCreate,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.add_feedback(current_user, okr_id, payload.comment, payload.recommended_grade)
