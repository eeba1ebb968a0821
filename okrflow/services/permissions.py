"""
Who may act on an OKR at its current stage.

A stage is owned by a role taken from the owner's workflow. Holding the role
is not enough: the role must resolve, for the OKR's department, to the acting
user. Resolution errors (ambiguous / not found) propagate so the caller sees
a configuration gap instead of a silent denial.
"""
from typing import Optional
from sqlalchemy.orm import Session

from okrflow.core.config import settings
from okrflow.core.exceptions import AuthorizationError
from okrflow.models.okr import OKR, OKRStatus, OKRLevel
from okrflow.models.user import User
from okrflow.services.approver_resolver import ApproverResolver, ApproverRoles
from okrflow.services.workflow_registry import WorkflowRegistry

STAGE_LEVELS = {
    OKRStatus.PENDING_L1_CREATE.value: 1,
    OKRStatus.PENDING_L2_CREATE.value: 2,
    OKRStatus.PENDING_L1_ASSESS.value: 1,
    OKRStatus.PENDING_L2_ASSESS.value: 2,
    OKRStatus.PENDING_L3_ASSESS.value: 3,
}


def is_admin(user: User) -> bool:
    return user.role in settings.workflow.admin_roles


def is_top_executive(user: User) -> bool:
    return user.role == settings.workflow.top_executive_role


def is_owner(user: User, okr: OKR) -> bool:
    return okr.user_id == user.id


class StagePermissions:
    def __init__(self, db: Session, resolver: Optional[ApproverResolver] = None):
        self.db = db
        self.resolver = resolver or ApproverResolver(db)
        self.registry: WorkflowRegistry = self.resolver.registry

    def roles(self, okr: OKR) -> ApproverRoles:
        return self.resolver.resolve_approvers(okr)

    def is_stage_approver(self, user: User, okr: OKR, role: Optional[str]) -> bool:
        """True when ``role`` resolves to ``user`` for the OKR's department."""
        if not role or user.role != role or is_owner(user, okr):
            return False
        return self.resolver.resolve_users(role, okr.department).user.id == user.id

    def is_department_primary(self, user: User, okr: OKR) -> bool:
        if not okr.department or user.department != okr.department or not user.is_primary_approver:
            return False
        primary = self.resolver.department_primary(okr.department)
        return primary is not None and primary.id == user.id

    def can_act_l1_assessment(self, user: User, okr: OKR, roles: Optional[ApproverRoles] = None) -> bool:
        if is_owner(user, okr):
            return False
        if self.is_department_primary(user, okr):
            return True
        if is_top_executive(user) and okr.level == OKRLevel.DEPARTMENT.value:
            return True
        roles = roles or self.roles(okr)
        return self.is_stage_approver(user, okr, roles.l1)

    def can_act_at_stage(self, user: User, okr: OKR, roles: Optional[ApproverRoles] = None) -> bool:
        """Whether ``user`` owns the current creation or assessment stage."""
        level = STAGE_LEVELS.get(okr.status)
        if level is None or okr.archived:
            return False
        roles = roles or self.roles(okr)
        if okr.status == OKRStatus.PENDING_L1_ASSESS.value:
            return self.can_act_l1_assessment(user, okr, roles)
        return self.is_stage_approver(user, okr, roles.for_level(level))

    def require_creation_approver(self, user: User, okr: OKR, roles: ApproverRoles):
        if is_admin(user):
            return
        if not self.can_act_at_stage(user, okr, roles):
            raise AuthorizationError(
                f"User {user.id} is not the approver for OKR {okr.id} at stage {okr.status}."
            )

    def require_assessment_approver(self, user: User, okr: OKR, roles: ApproverRoles):
        if not self.can_act_at_stage(user, okr, roles):
            raise AuthorizationError(
                f"User {user.id} is not the assessor for OKR {okr.id} at stage {okr.status}."
            )

    def require_owner(self, user: User, okr: OKR):
        if not is_owner(user, okr):
            raise AuthorizationError(f"Only the owner can change OKR {okr.id}.")

    def can_veto(self, user: User, okr: OKR) -> bool:
        return not is_owner(user, okr) and self.registry.is_high_level(user.role)

    def can_archive(self, user: User) -> bool:
        return user.role in settings.workflow.archive_roles

    def is_feedback_contributor(self, user: User, okr: OKR, roles: Optional[ApproverRoles] = None) -> bool:
        if is_owner(user, okr):
            return False
        if user.id in (okr.peer_reviewers or []):
            return True
        roles = roles or self.roles(okr)
        return user.role in roles.cc
