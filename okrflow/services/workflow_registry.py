"""
Workflow registry: which roles approve an employee holding a given role.

Lookups never fail. A role without an entry gets a synthetic chain whose
only step is the configured fallback approver (HRBP by default).
Hierarchy predicates (cadre, high-level) are derived from the current table
on every call; nothing is cached.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from sqlalchemy.orm import Session

from okrflow.core.config import settings
from okrflow.core.exceptions import ValidationError, NotFoundError
from okrflow.models.user import Role
from okrflow.models.workflow import ApprovalWorkflow
from okrflow.services.base import BaseService


@dataclass(frozen=True)
class WorkflowDefinition:
    target_role: str
    approver_role_l1: str
    approver_role_l2: Optional[str] = None
    approver_role_l3: Optional[str] = None
    cc_roles: List[str] = field(default_factory=list)
    is_default: bool = False

    @classmethod
    def from_model(cls, wf: ApprovalWorkflow) -> "WorkflowDefinition":
        return cls(
            target_role=wf.target_role,
            approver_role_l1=wf.approver_role_l1,
            approver_role_l2=wf.approver_role_l2 or None,
            approver_role_l3=wf.approver_role_l3 or None,
            cc_roles=list(wf.cc_roles or []),
        )


R = Role
DEFAULT_WORKFLOWS = [
    WorkflowDefinition(R.PRODUCT_EMPLOYEE.value, R.BUSINESS_HEAD.value, R.PRODUCT_GM.value),
    WorkflowDefinition(R.RD_EMPLOYEE.value, R.TECH_HEAD.value, R.TECH_GM.value, cc_roles=[R.TECH_MANAGER.value]),
    WorkflowDefinition(R.QA_EMPLOYEE.value, R.TECH_HEAD.value, R.TECH_GM.value, cc_roles=[R.QA_MANAGER.value, R.QA_HEAD.value]),
    WorkflowDefinition(R.PROJECT_MANAGER.value, R.TECH_HEAD.value, R.QUALITY_GM.value),
    WorkflowDefinition(R.QA_HEAD.value, R.TECH_GM.value, cc_roles=[R.TECH_HEAD.value]),
    WorkflowDefinition(R.VP_TECH.value, R.PRESIDENT.value),
    WorkflowDefinition(R.VP_PRODUCT.value, R.PRESIDENT.value),
    WorkflowDefinition(R.VP_MARKET.value, R.PRESIDENT.value),
    WorkflowDefinition(R.QUALITY_GM.value, R.VP_PRODUCT.value),
    WorkflowDefinition(R.PROJECT_DEPT_GM.value, R.VP_MARKET.value),
    WorkflowDefinition(R.PRODUCT_GM.value, R.VP_PRODUCT.value),
    WorkflowDefinition(R.TECH_GM.value, R.VP_TECH.value),
    WorkflowDefinition(R.HRBP.value, R.PRESIDENT.value),
    WorkflowDefinition(R.TECH_EXPERT.value, R.GENERAL_OFFICE_DIRECTOR.value),
    WorkflowDefinition(R.GENERAL_OFFICE_DIRECTOR.value, R.VP_TECH.value),
    WorkflowDefinition(R.EMPLOYEE.value, R.HRBP.value),
    WorkflowDefinition(R.TECH_MANAGER.value, R.TECH_HEAD.value, R.TECH_GM.value),
    # Team OKRs owned by heads flow up to the VP
    WorkflowDefinition(R.BUSINESS_HEAD.value, R.PRODUCT_GM.value, R.VP_PRODUCT.value),
    WorkflowDefinition(R.TECH_HEAD.value, R.TECH_GM.value, R.VP_TECH.value),
]


class WorkflowRegistry(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    # --- reads ---

    def list_workflows(self) -> List[WorkflowDefinition]:
        rows = self.db.query(ApprovalWorkflow).order_by(ApprovalWorkflow.id).all()
        return [WorkflowDefinition.from_model(wf) for wf in rows]

    def find(self, role: str) -> Optional[WorkflowDefinition]:
        wf = self.db.query(ApprovalWorkflow).filter(ApprovalWorkflow.target_role == role).first()
        return WorkflowDefinition.from_model(wf) if wf else None

    def get_workflow(self, role: Optional[str]) -> WorkflowDefinition:
        """Entry for ``role``, or the fallback chain when none is configured."""
        found = self.find(role) if role else None
        if found is not None:
            return found
        return WorkflowDefinition(
            target_role=role or "",
            approver_role_l1=settings.workflow.fallback_approver_role,
            is_default=True,
        )

    def is_cadre(self, role: str) -> bool:
        """A role is cadre (a manager) if it approves at L1 or L2 for anyone."""
        return any(role in (wf.approver_role_l1, wf.approver_role_l2) for wf in self.list_workflows())

    def is_high_level(self, role: str) -> bool:
        """L2/L3 approvers anywhere: cross-level reviewers with veto right."""
        return any(role in (wf.approver_role_l2, wf.approver_role_l3) for wf in self.list_workflows())

    def can_assess_leaders(self, role: str) -> bool:
        """True if ``role`` approves some target role that is itself cadre."""
        workflows = self.list_workflows()
        cadre = {wf.approver_role_l1 for wf in workflows} | {wf.approver_role_l2 for wf in workflows if wf.approver_role_l2}
        return any(
            role in (wf.approver_role_l1, wf.approver_role_l2, wf.approver_role_l3) and wf.target_role in cadre
            for wf in workflows
        )

    # --- configuration writes (admin surfaces only) ---

    def save_workflow(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace the entry for ``definition.target_role``."""
        if not definition.target_role or not definition.target_role.strip():
            raise ValidationError("Workflow target role is required.")
        if not definition.approver_role_l1 or not definition.approver_role_l1.strip():
            raise ValidationError("A first-level approver role is required.")
        if definition.approver_role_l3 and not definition.approver_role_l2:
            raise ValidationError("A third-level approver needs a second-level approver.")

        wf = self.db.query(ApprovalWorkflow).filter(
            ApprovalWorkflow.target_role == definition.target_role
        ).first()
        if wf is None:
            wf = ApprovalWorkflow(target_role=definition.target_role)
            self.db.add(wf)
        wf.approver_role_l1 = definition.approver_role_l1
        wf.approver_role_l2 = definition.approver_role_l2 or None
        wf.approver_role_l3 = definition.approver_role_l3 or None
        # De-duplicated, order kept
        wf.cc_roles = list(dict.fromkeys(r for r in definition.cc_roles if r))
        self._commit()
        self.db.refresh(wf)
        self.log_info(f"Workflow saved for role {wf.target_role}")
        return WorkflowDefinition.from_model(wf)

    def delete_workflow(self, role: str):
        deleted = self.db.query(ApprovalWorkflow).filter(
            ApprovalWorkflow.target_role == role
        ).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("Workflow", role)
        self._commit()
        self.log_info(f"Workflow deleted for role {role}")

    def seed_defaults(self) -> int:
        """Install the default table if the registry is empty. Returns rows added."""
        if self.db.query(ApprovalWorkflow).count() > 0:
            return 0
        for definition in DEFAULT_WORKFLOWS:
            self.db.add(ApprovalWorkflow(
                target_role=definition.target_role,
                approver_role_l1=definition.approver_role_l1,
                approver_role_l2=definition.approver_role_l2,
                approver_role_l3=definition.approver_role_l3,
                cc_roles=list(definition.cc_roles),
            ))
        self._commit()
        return len(DEFAULT_WORKFLOWS)
