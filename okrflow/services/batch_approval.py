"""
Manager-side views over the lifecycle: team partitions, "approve all ready",
approval queues and badge counts.

Views never fail because one OKR has a misconfigured approver chain: such
items are left out of the actor's queues and a warning is logged. The
transition itself still raises when someone tries to act on it.
"""
from dataclasses import dataclass, field
from typing import Callable, List
from sqlalchemy.orm import Session

from okrflow.core.exceptions import (
    AppException, AmbiguousApproverError, ApproverNotFoundError, BatchApprovalBlockedError
)
from okrflow.models.okr import OKR, OKRStatus, OKRLevel, CREATION_STATUSES, ASSESSMENT_STATUSES
from okrflow.models.user import User
from okrflow.services.base import BaseService
from okrflow.services.okr_lifecycle import OKRLifecycleService
from okrflow.services.permissions import is_admin, is_top_executive

_CREATION = {s.value for s in CREATION_STATUSES}
_ASSESSMENT = {s.value for s in ASSESSMENT_STATUSES}
_HIGHER_STAGES = {OKRStatus.PENDING_L2_ASSESS.value, OKRStatus.PENDING_L3_ASSESS.value}


@dataclass
class TeamPartition:
    awaiting_self_assessment: List[OKR] = field(default_factory=list)
    awaiting_my_scoring: List[OKR] = field(default_factory=list)
    scored_awaiting_submission: List[OKR] = field(default_factory=list)
    awaiting_higher_approval: List[OKR] = field(default_factory=list)
    actionable: List[OKR] = field(default_factory=list)


class BatchApprovalService(BaseService):
    def __init__(self, db: Session, lifecycle: OKRLifecycleService):
        super().__init__(db)
        self.lifecycle = lifecycle
        self.permissions = lifecycle.permissions

    def _guarded(self, check: Callable[..., bool], user: User, okr: OKR, *args) -> bool:
        try:
            return check(user, okr, *args)
        except (AmbiguousApproverError, ApproverNotFoundError) as e:
            self.log_warning(f"Skipping OKR {okr.id} in queues of user {user.id}: {e.message}")
            return False

    def _open_okrs(self, user: User) -> List[OKR]:
        return self.db.query(OKR).filter(
            OKR.archived == False,
            OKR.user_id != user.id,
        ).order_by(OKR.id).all()

    def _in_scope(self, user: User, okr: OKR) -> bool:
        roles = self.permissions.roles(okr)
        if user.role in (roles.l1, roles.l2, roles.l3):
            return True
        if self.permissions.is_department_primary(user, okr):
            return True
        return is_top_executive(user) and okr.level == OKRLevel.DEPARTMENT.value

    def team_partitions(self, manager: User) -> TeamPartition:
        parts = TeamPartition()
        for okr in self._open_okrs(manager):
            if not self._in_scope(manager, okr):
                continue
            if okr.status == OKRStatus.PUBLISHED.value:
                parts.awaiting_self_assessment.append(okr)
            elif okr.status == OKRStatus.PENDING_L1_ASSESS.value:
                if not self._guarded(self.permissions.can_act_l1_assessment, manager, okr):
                    continue
                if okr.is_scored:
                    parts.scored_awaiting_submission.append(okr)
                    parts.actionable.append(okr)
                else:
                    parts.awaiting_my_scoring.append(okr)
            elif okr.status in _HIGHER_STAGES:
                if self._guarded(self.permissions.can_act_at_stage, manager, okr):
                    parts.actionable.append(okr)
                else:
                    parts.awaiting_higher_approval.append(okr)
            elif okr.status == OKRStatus.PENDING_ARCHIVE.value:
                parts.awaiting_higher_approval.append(okr)
        return parts

    def batch_approve(self, manager: User) -> dict:
        """
        Approve every ready assessment of the manager's team.
        Refused outright while any team member still awaits the manager's
        score; otherwise each OKR is approved and committed on its own.
        """
        parts = self.team_partitions(manager)
        pending = len(parts.awaiting_my_scoring)
        if pending:
            raise BatchApprovalBlockedError(
                f"{pending} assessment(s) still need your score before approving the team.",
                blocking_count=pending,
            )
        if not parts.actionable:
            raise BatchApprovalBlockedError("Nothing is ready for approval.", blocking_count=0)

        ids = [okr.id for okr in parts.actionable]
        succeeded, failed = [], []
        for okr_id in ids:
            try:
                self.lifecycle.approve_assessment(manager, okr_id)
                succeeded.append(okr_id)
            except AppException as e:
                self.log_warning(f"Batch approval of OKR {okr_id} failed: {e.message}")
                failed.append({"okr_id": okr_id, "code": e.error_code, "message": e.message})
        self.log_info(f"Batch approval by user {manager.id}: {len(succeeded)} approved, {len(failed)} failed")
        return {"succeeded": succeeded, "failed": failed}

    def creation_approvals_for(self, user: User) -> List[OKR]:
        return [
            okr for okr in self._open_okrs(user)
            if okr.status in _CREATION
            and (is_admin(user) or self._guarded(self.permissions.can_act_at_stage, user, okr))
        ]

    def actionable_items_for(self, user: User) -> List[OKR]:
        """Everything waiting on ``user``: creation approvals, assessments, archiving."""
        items = self.creation_approvals_for(user) + self.team_partitions(user).actionable
        if self.permissions.can_archive(user):
            items += [o for o in self._open_okrs(user) if o.status == OKRStatus.PENDING_ARCHIVE.value]
        unique = {}
        for okr in items:
            unique.setdefault(okr.id, okr)
        return list(unique.values())

    def badge_counts(self, user: User) -> dict:
        open_okrs = self._open_okrs(user)

        def feedback_requests(statuses):
            return sum(
                1 for o in open_okrs
                if o.status in statuses and self.permissions.is_feedback_contributor(user, o)
            )

        awaiting_me = sum(
            1 for o in open_okrs
            if o.status in _ASSESSMENT and self._guarded(self.permissions.can_act_at_stage, user, o)
        )
        own_published = self.db.query(OKR).filter(
            OKR.user_id == user.id,
            OKR.status == OKRStatus.PUBLISHED.value,
            OKR.archived == False,
        ).count()
        return {
            "approvals": len(self.creation_approvals_for(user)) + feedback_requests(_CREATION),
            "assessments": own_published + feedback_requests(_ASSESSMENT) + awaiting_me,
        }
