from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from okrflow.database import get_db
from okrflow.models.user import User
from okrflow.routers.auth_deps import get_current_user, get_lifecycle, require_admin
from okrflow.schemas.workflow import (
    ApproverRolesResponse,
    DepartmentMatrix,
    HierarchyFlags,
    ResolutionResponse,
    TeamResponsibleResponse,
    WorkflowIn,
    WorkflowResponse,
)
from okrflow.services.approver_resolver import ApproverResolver, seniority_rank
from okrflow.services.audit import AuditService
from okrflow.services.okr_lifecycle import OKRLifecycleService
from okrflow.services.workflow_registry import WorkflowDefinition, WorkflowRegistry

router = APIRouter(prefix="/workflows", tags=["Workflows"])


@router.get("/", response_model=List[WorkflowResponse])
def list_workflows(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return WorkflowRegistry(db).list_workflows()


@router.get("/matrix", response_model=List[DepartmentMatrix])
def approval_matrix(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    return ApproverResolver(db).approval_matrix()


@router.get("/resolve", response_model=ResolutionResponse)
def resolve_user(
    role: str,
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    resolution = ApproverResolver(db).resolve_users(role, department)
    return ResolutionResponse(
        role=role,
        department=department,
        user_id=resolution.user.id,
        user_name=resolution.user.name,
        scope=resolution.scope.value,
        designated=resolution.designated,
        candidate_ids=resolution.candidate_ids,
    )


@router.get("/departments/{department}/responsible", response_model=TeamResponsibleResponse)
def team_responsible(
    department: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ApproverResolver(db).team_responsible(department)


@router.get("/okrs/{okr_id}/approvers", response_model=ApproverRolesResponse)
def okr_approvers(
    okr_id: int,
    current_user: User = Depends(get_current_user),
    lifecycle: OKRLifecycleService = Depends(get_lifecycle),
):
    okr = lifecycle.get_okr(okr_id)
    roles = lifecycle.resolver.resolve_approvers(okr)
    return ApproverRolesResponse(okr_id=okr.id, l1=roles.l1, l2=roles.l2, l3=roles.l3, cc=roles.cc)


@router.get("/roles/{role}/hierarchy", response_model=HierarchyFlags)
def role_hierarchy(
    role: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    registry = WorkflowRegistry(db)
    return HierarchyFlags(
        role=role,
        is_cadre=registry.is_cadre(role),
        is_high_level=registry.is_high_level(role),
        can_assess_leaders=registry.can_assess_leaders(role),
        seniority_rank=seniority_rank(role),
    )


@router.get("/{role}", response_model=WorkflowResponse)
def get_workflow(
    role: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return WorkflowRegistry(db).get_workflow(role)


@router.put("/{role}", response_model=WorkflowResponse)
def save_workflow(
    role: str,
    payload: WorkflowIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    registry = WorkflowRegistry(db)
    before = registry.find(role)
    saved = registry.save_workflow(WorkflowDefinition(target_role=role, **payload.model_dump()))
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="save_workflow",
        module="WORKFLOW",
        details={"target_role": role},
        before_state=vars(before) if before else None,
        after_state=vars(saved),
    )
    return saved


@router.delete("/{role}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workflow(
    role: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    WorkflowRegistry(db).delete_workflow(role)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="delete_workflow",
        module="WORKFLOW",
        details={"target_role": role},
    )
