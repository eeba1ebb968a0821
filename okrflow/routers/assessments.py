from fastapi import APIRouter, Depends, Request
from typing import List

from okrflow.core.limiter import limiter
from okrflow.models.user import User
from okrflow.routers.auth_deps import get_current_user, get_lifecycle
from okrflow.schemas.okr import (
    BadgeCounts,
    BatchResult,
    GradeAdjustment,
    ManagerScoreUpdate,
    OKRResponse,
    OKRSummary,
    ReasonRequest,
    SelfAssessmentUpdate,
    TeamPartitions,
    VersionedRequest,
)
from okrflow.services.batch_approval import BatchApprovalService
from okrflow.services.okr_lifecycle import OKRLifecycleService

router = APIRouter(prefix="/assessments", tags=["Assessments"])


def get_batch_service(lifecycle: OKRLifecycleService = Depends(get_lifecycle)) -> BatchApprovalService:
    return BatchApprovalService(lifecycle.db, lifecycle)


# --- queues (registered before /{okr_id} routes) ---

@router.get("/team", response_model=TeamPartitions)
def team_partitions(
    current_user: User = Depends(get_current_user),
    batch: BatchApprovalService = Depends(get_batch_service),
):
    return vars(batch.team_partitions(current_user))


@router.get("/actionable", response_model=List[OKRSummary])
def actionable_items(
    current_user: User = Depends(get_current_user),
    batch: BatchApprovalService = Depends(get_batch_service),
):
    return batch.actionable_items_for(current_user)


@router.get("/badges", response_model=BadgeCounts)
def badge_counts(
    current_user: User = Depends(get_current_user),
    batch: BatchApprovalService = Depends(get_batch_service),
):
    return batch.badge_counts(current_user)


@router.post("/batch-approve", response_model=BatchResult)
@limiter.limit("10/minute")
def batch_approve(
    request: Request,
    current_user: User = Depends(get_current_user),
    batch: BatchApprovalService = Depends(get_batch_service),
):
    return batch.batch_approve(current_user)


@router.post("/departments/{department}/archive", response_model=BatchResult)
def archive_department(
    department: str,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.archive_department(current_user, department)


# --- owner ---

@router.put("/{okr_id}/self", response_model=OKRResponse)
def save_self_assessment(
    okr_id: int,
    payload: SelfAssessmentUpdate,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.save_self_assessment(current_user, okr_id, payload)


@router.post("/{okr_id}/self/submit", response_model=OKRResponse)
def submit_self_assessment(
    okr_id: int,
    payload: VersionedRequest = VersionedRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.submit_self_assessment(current_user, okr_id, payload.expected_version)


# --- approvers ---

@router.put("/{okr_id}/scores", response_model=OKRResponse)
def score_assessment(
    okr_id: int,
    payload: ManagerScoreUpdate,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.score_assessment(current_user, okr_id, payload)


@router.put("/{okr_id}/grade", response_model=OKRResponse)
def adjust_grade(
    okr_id: int,
    payload: GradeAdjustment,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.adjust_grade(current_user, okr_id, payload.grade, payload.reason, payload.expected_version)


@router.post("/{okr_id}/approve", response_model=OKRResponse)
def approve_assessment(
    okr_id: int,
    payload: VersionedRequest = VersionedRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.approve_assessment(current_user, okr_id, payload.expected_version)


@router.post("/{okr_id}/reject", response_model=OKRResponse)
def reject_assessment(
    okr_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.reject_assessment(current_user, okr_id, payload.reason, payload.expected_version)


@router.post("/{okr_id}/veto", response_model=OKRResponse)
def veto(
    okr_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.veto(current_user, okr_id, payload.reason, payload.expected_version)


@router.post("/{okr_id}/archive", response_model=OKRResponse)
def archive(
    okr_id: int,
    payload: VersionedRequest = VersionedRequest(),
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    return lifecycle.archive(current_user, okr_id, payload.expected_version)
