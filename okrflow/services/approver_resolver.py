"""
Approver resolution.

Two questions, kept apart on purpose:

* ``resolve_approvers(okr)`` - which *roles* approve this OKR. A registry
  lookup keyed by the owner's role; the OKR level does not matter.
* ``resolve_users(role, department)`` - which *user* holds that role for a
  department. Department scope first, then the whole organization. Several
  candidates are only acceptable when a designation picks one of them;
  otherwise the caller gets an error it must surface, never a guess.
"""
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from okrflow.core.exceptions import AmbiguousApproverError, ApproverNotFoundError
from okrflow.models.okr import OKR
from okrflow.models.user import User, ApproverDesignation, Role
from okrflow.services.base import BaseService
from okrflow.services.directory import UserDirectory
from okrflow.services.workflow_registry import WorkflowRegistry


class ResolutionScope(str, enum.Enum):
    LOCAL = "LOCAL"
    GLOBAL = "GLOBAL"


@dataclass(frozen=True)
class ApproverRoles:
    l1: Optional[str] = None
    l2: Optional[str] = None
    l3: Optional[str] = None
    cc: List[str] = field(default_factory=list)

    def for_level(self, level: int) -> Optional[str]:
        return {1: self.l1, 2: self.l2, 3: self.l3}.get(level)


@dataclass(frozen=True)
class ApproverResolution:
    user: User
    scope: ResolutionScope
    candidate_ids: List[int]
    designated: bool = False


@dataclass
class TeamResponsible:
    names: List[str]
    role: Optional[str]
    is_primary: bool = False
    is_error: bool = False


_SENIORITY = {
    Role.PRESIDENT.value: 100,
    Role.VP_PRODUCT.value: 90,
    Role.VP_TECH.value: 90,
    Role.VP_MARKET.value: 90,
    Role.PRODUCT_GM.value: 80,
    Role.TECH_GM.value: 80,
    Role.QUALITY_GM.value: 80,
    Role.PROJECT_DEPT_GM.value: 80,
    Role.GENERAL_OFFICE_DIRECTOR.value: 80,
    Role.BUSINESS_HEAD.value: 70,
    Role.TECH_HEAD.value: 70,
    Role.QA_HEAD.value: 70,
    Role.QA_MANAGER.value: 60,
    Role.TECH_MANAGER.value: 60,
    Role.PROJECT_MANAGER.value: 50,
}


def seniority_rank(role: Optional[str]) -> int:
    """Informational ordering of role tiers. Unknown and custom roles rank 0."""
    return _SENIORITY.get(role or "", 0)


class ApproverResolver(BaseService):
    def __init__(self, db: Session, registry: Optional[WorkflowRegistry] = None,
                 directory: Optional[UserDirectory] = None):
        super().__init__(db)
        self.registry = registry or WorkflowRegistry(db)
        self.directory = directory or UserDirectory(db)

    def resolve_approvers(self, okr: OKR) -> ApproverRoles:
        owner = self.directory.find_user(okr.user_id)
        if owner is None:
            return ApproverRoles()
        return self.roles_for(owner.role)

    def roles_for(self, role: str) -> ApproverRoles:
        wf = self.registry.get_workflow(role)
        return ApproverRoles(
            l1=wf.approver_role_l1,
            l2=wf.approver_role_l2,
            l3=wf.approver_role_l3,
            cc=list(wf.cc_roles),
        )

    def resolve_users(self, role: str, department: Optional[str]) -> ApproverResolution:
        """
        Concrete approving user for ``role`` in ``department``.

        Raises:
            AmbiguousApproverError: several candidates in scope, none designated.
            ApproverNotFoundError: nobody active holds ``role``.
        """
        active = self.db.query(User).filter(User.role == role, User.is_active == True)

        if department:
            local = active.filter(User.department == department).order_by(User.id).all()
            if local:
                return self._pick(role, department, local, ResolutionScope.LOCAL)

        everyone = active.order_by(User.id).all()
        if everyone:
            return self._pick(role, department, everyone, ResolutionScope.GLOBAL)

        raise ApproverNotFoundError(role, department)

    def try_resolve_user(self, role: Optional[str], department: Optional[str]) -> Optional[User]:
        """Like ``resolve_users`` but returns None on any resolution failure."""
        if not role:
            return None
        try:
            return self.resolve_users(role, department).user
        except (AmbiguousApproverError, ApproverNotFoundError):
            return None

    def _pick(self, role: str, department: Optional[str], candidates: List[User],
              scope: ResolutionScope) -> ApproverResolution:
        ids = [u.id for u in candidates]
        if len(candidates) == 1:
            only = candidates[0]
            return ApproverResolution(only, scope, ids, designated=only.is_primary_approver)

        query = self.db.query(ApproverDesignation).filter(
            ApproverDesignation.role == role,
            ApproverDesignation.user_id.in_(ids),
        )
        if scope == ResolutionScope.LOCAL:
            query = query.filter(ApproverDesignation.department == department)
        designated_ids = {d.user_id for d in query.all()}
        # In global scope a designation only counts for the holder's own department
        designated = [
            u for u in candidates
            if u.id in designated_ids and (scope == ResolutionScope.LOCAL or u.is_primary_approver)
        ]
        if len(designated) == 1:
            return ApproverResolution(designated[0], scope, ids, designated=True)

        self.log_warning(f"Ambiguous approver for {role} in {department or 'global scope'}: {ids}")
        raise AmbiguousApproverError(role, department if scope == ResolutionScope.LOCAL else None, ids)

    # --- informational views ---

    def department_primary(self, department: str) -> Optional[User]:
        """
        The department's primary approver: its highest-ranked designee holding
        a cadre role. None when nobody qualifies or the top rank is shared.
        """
        designees = [
            u for u in self.directory.list_users(department=department)
            if u.is_primary_approver and self.registry.is_cadre(u.role)
        ]
        if not designees:
            return None
        top = max(seniority_rank(u.role) for u in designees)
        leaders = [u for u in designees if seniority_rank(u.role) == top]
        return leaders[0] if len(leaders) == 1 else None

    def team_responsible(self, department: str) -> TeamResponsible:
        """Most senior user(s) of a department; the designated one wins ties."""
        members = self.directory.list_users(department=department)
        if not members:
            return TeamResponsible(names=[], role=None)

        top = max(seniority_rank(u.role) for u in members)
        if top <= 0:
            return TeamResponsible(names=[], role=None, is_error=True)

        leaders = [u for u in members if seniority_rank(u.role) == top]
        primary = next((u for u in leaders if u.is_primary_approver), None)
        if primary is not None:
            return TeamResponsible(names=[primary.name], role=primary.role, is_primary=True)
        return TeamResponsible(
            names=[u.name for u in leaders],
            role=leaders[0].role,
            is_error=len(leaders) > 1,
        )

    def approval_matrix(self) -> List[Dict]:
        """
        For every department and every role present in it, who approves at
        each level. Resolution failures are reported inline per cell.
        """
        matrix = []
        for department in self.directory.list_departments():
            members = self.directory.list_users(department=department)
            if not members:
                continue
            rows = []
            for role in sorted({u.role for u in members}):
                roles = self.roles_for(role)
                row = {
                    "role": role,
                    "role_label": self.directory.role_label(role),
                    "cc_names": [u.name for u in members if u.role in roles.cc],
                }
                for level in (1, 2, 3):
                    row[f"l{level}"] = self._matrix_cell(roles.for_level(level), department)
                rows.append(row)
            matrix.append({
                "department": department,
                "team_responsible": self.team_responsible(department),
                "roles": rows,
            })
        return matrix

    def _matrix_cell(self, role: Optional[str], department: str) -> Optional[Dict]:
        if not role:
            return None
        cell = {"role": role, "role_label": self.directory.role_label(role),
                "user_id": None, "name": None, "is_primary": False, "error": None}
        try:
            resolution = self.resolve_users(role, department)
        except (AmbiguousApproverError, ApproverNotFoundError) as e:
            cell["error"] = e.error_code
            cell["name"] = e.message
            return cell
        cell.update(user_id=resolution.user.id, name=resolution.user.name, is_primary=resolution.designated)
        return cell
