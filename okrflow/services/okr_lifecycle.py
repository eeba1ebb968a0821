"""
OKR lifecycle state machine.

    DRAFT ──submit──▶ PENDING_L1_CREATE ──▶ PENDING_L2_CREATE ──▶ PUBLISHED
      ▲                      │ reject             │ reject            │
      └──────────────────────┴────────────────────┘                   │ submit self-assessment
                                                                      ▼
    PUBLISHED + archived ◀─archive── PENDING_ARCHIVE ◀── L3 ◀── L2 ◀── PENDING_L1_ASSESS
                                        │ veto                 │ reject      ▲
                                        └──────────────────────┴────────────┘

Every operation takes the acting user explicitly, validates the request
completely before touching the aggregate, then commits once. The audit entry
and the change event are emitted only after a successful commit.
"""
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from okrflow.core.config import settings
from okrflow.core.exceptions import (
    AppException,
    AuthorizationError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from okrflow.models.okr import (
    OKR, Objective, KeyResult, CCFeedback, OKRStatus, OKRLevel, CREATION_STATUSES, ASSESSMENT_STATUSES
)
from okrflow.models.user import User
from okrflow.schemas.okr import (
    OKRCreate, OKRUpdate, ObjectiveIn, SelfAssessmentUpdate, ManagerScoreUpdate
)
from okrflow.services import scoring
from okrflow.services.approver_resolver import ApproverResolver
from okrflow.services.audit import AuditService
from okrflow.services.base import BaseService
from okrflow.services.events import ChangeNotifier, OKRChangedEvent
from okrflow.services.permissions import StagePermissions, is_admin, is_top_executive

MODULE = "OKR"

_FEEDBACK_STATUSES = {OKRStatus.DRAFT.value} | {s.value for s in CREATION_STATUSES} | {s.value for s in ASSESSMENT_STATUSES}


def _now():
    return datetime.now(timezone.utc)


def _blank(text: Optional[str]) -> bool:
    return not text or not text.strip()


def validate_structure(okr: OKR):
    """Weights must add up before an OKR can leave DRAFT."""
    if not okr.objectives:
        raise ValidationError("Add at least one objective before submitting.")

    total = sum(o.weight or 0 for o in okr.objectives)
    if abs(total - 100) > 0.01:
        raise ValidationError(
            f"Objective weights must sum to 100 (currently {total:g}).",
            details={"objective_weight_total": total},
        )

    for index, objective in enumerate(okr.objectives, start=1):
        if not objective.key_results:
            raise ValidationError(
                f"Objective {index} needs at least one key result.",
                details={"objective": index},
            )
        kr_total = sum(kr.weight or 0 for kr in objective.key_results)
        if abs(kr_total - 100) > 0.01:
            raise ValidationError(
                f"Key result weights of objective {index} must sum to 100 (currently {kr_total:g}).",
                details={"objective": index, "key_result_weight_total": kr_total},
            )


def missing_self_comments(okr: OKR) -> List[str]:
    missing = []
    for i, objective in enumerate(okr.objectives, start=1):
        for k, kr in enumerate(objective.key_results, start=1):
            if _blank(kr.self_comment):
                missing.append(f"O{i}.KR{k}")
        if _blank(objective.self_comment):
            missing.append(f"O{i}")
    if _blank(okr.self_comment):
        missing.append("overall")
    return missing


def default_title(owner: User, level: str) -> str:
    return f"{owner.name}'s {level.capitalize()} OKR"


def default_period(level: str, today: Optional[datetime] = None) -> str:
    today = today or _now()
    if level == OKRLevel.COMPANY.value:
        return f"{today.year} Full Year"
    return f"{today.year} {'H1' if today.month <= 6 else 'H2'}"


def _snapshot(okr: OKR) -> dict:
    return {
        "status": okr.status,
        "archived": okr.archived,
        "total_score": okr.total_score,
        "final_grade": okr.final_grade,
        "version": okr.version,
    }


def _keeps_a_score(okr: OKR, data: ManagerScoreUpdate) -> bool:
    """Whether at least one manager score survives applying ``data``."""
    kr_scores = {kr.id: kr.manager_score for o in okr.objectives for kr in o.key_results}
    overrides = {o.id: o.manager_override for o in okr.objectives}
    for item in data.key_results:
        if "manager_score" in item.model_fields_set:
            kr_scores[item.id] = item.manager_score
    for item in data.objectives:
        if "manager_score" in item.model_fields_set:
            overrides[item.id] = item.manager_score
    return any(v is not None for v in kr_scores.values()) or any(v is not None for v in overrides.values())


class OKRLifecycleService(BaseService):
    def __init__(
        self,
        db: Session,
        notifier: Optional[ChangeNotifier] = None,
        resolver: Optional[ApproverResolver] = None,
    ):
        super().__init__(db)
        self.notifier = notifier
        self.resolver = resolver or ApproverResolver(db)
        self.permissions = StagePermissions(db, self.resolver)
        self.grading = scoring.GradingService(db)
        self.audit = AuditService(db)

    # --- reads ---

    def get_okr(self, okr_id: int) -> OKR:
        okr = self.db.get(OKR, okr_id)
        if okr is None:
            raise NotFoundError("OKR", okr_id)
        return okr

    def list_okrs(
        self,
        owner_id: Optional[int] = None,
        department: Optional[str] = None,
        status: Optional[str] = None,
        archived: Optional[bool] = None,
    ) -> List[OKR]:
        query = self.db.query(OKR)
        if owner_id is not None:
            query = query.filter(OKR.user_id == owner_id)
        if department:
            query = query.filter(OKR.department == department)
        if status:
            query = query.filter(OKR.status == status)
        if archived is not None:
            query = query.filter(OKR.archived == archived)
        return query.order_by(OKR.id).all()

    # --- plumbing ---

    def _load(self, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self.get_okr(okr_id)
        if expected_version is not None and expected_version != okr.version:
            raise ConcurrencyConflictError(okr.id, expected_version, okr.version)
        return okr

    def _persist(self, okr: OKR, actor: User, action: str, before: Optional[dict] = None,
                 details: Optional[dict] = None) -> OKR:
        # Child-only edits still bump the version stamp
        okr.updated_at = _now()
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            self.log_warning(f"Stale write rejected: {action} on OKR {okr.id}")
            raise ConcurrencyConflictError(okr.id)
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(okr)

        self.log_info(f"OKR {okr.id} {action} by user {actor.id}: status={okr.status} archived={okr.archived}")
        self.audit.record(
            actor_id=actor.id,
            actor_role=actor.role,
            action=action,
            module=MODULE,
            entity_type="okr",
            entity_id=okr.id,
            details=details,
            before_state=before,
            after_state=_snapshot(okr),
        )
        self._publish(okr.id, action, actor, okr.user_id, okr.status, okr.archived)
        return okr

    def _publish(self, okr_id: int, action: str, actor: User, owner_id: Optional[int],
                 status: Optional[str], archived: bool = False):
        if self.notifier is None:
            return
        self.notifier.publish(OKRChangedEvent(
            okr_id=okr_id,
            action=action,
            actor_id=actor.id,
            owner_id=owner_id,
            status=status,
            archived=archived,
        ))

    def _require_status(self, okr: OKR, action: str, *allowed: OKRStatus, allow_archived: bool = False):
        if okr.archived and not allow_archived:
            raise InvalidTransitionError(action, okr.status, archived=True)
        if okr.status not in {s.value for s in allowed}:
            raise InvalidTransitionError(action, okr.status, archived=okr.archived)

    @staticmethod
    def _build_objectives(items: List[ObjectiveIn]) -> List[Objective]:
        return [
            Objective(
                position=i,
                content=item.content,
                weight=item.weight,
                key_results=[
                    KeyResult(position=k, content=kr.content, weight=kr.weight)
                    for k, kr in enumerate(item.key_results)
                ],
            )
            for i, item in enumerate(items)
        ]

    @staticmethod
    def _clean_reviewers(owner_id: int, reviewers: List[int]) -> List[int]:
        return [uid for uid in dict.fromkeys(reviewers) if uid != owner_id]

    # --- content ---

    def create_okr(self, actor: User, data: OKRCreate) -> OKR:
        level = data.level.value if isinstance(data.level, OKRLevel) else data.level
        okr = OKR(
            user_id=actor.id,
            user_name=actor.name,
            department=actor.department,
            level=level,
            title=(data.title or "").strip() or default_title(actor, level),
            period=data.period or default_period(level),
            status=OKRStatus.DRAFT.value,
            archived=False,
            parent_okr_id=data.parent_okr_id,
            peer_reviewers=self._clean_reviewers(actor.id, data.peer_reviewers),
            objectives=self._build_objectives(data.objectives),
        )
        self.db.add(okr)
        return self._persist(okr, actor, "create", details={"title": okr.title, "level": level})

    def update_okr(self, actor: User, okr_id: int, data: OKRUpdate) -> OKR:
        okr = self._load(okr_id, data.expected_version)
        self.permissions.require_owner(actor, okr)
        self._require_status(okr, "edit", OKRStatus.DRAFT)

        changes = data.model_dump(exclude_unset=True, exclude={"expected_version", "objectives"})
        if "title" in changes and _blank(changes["title"]):
            raise ValidationError("Title cannot be empty.")

        before = _snapshot(okr)
        for field, value in changes.items():
            if field == "peer_reviewers":
                value = self._clean_reviewers(okr.user_id, value or [])
            setattr(okr, field, value.strip() if isinstance(value, str) else value)
        if data.objectives is not None:
            okr.objectives = self._build_objectives(data.objectives)
        return self._persist(okr, actor, "update", before, details={"fields": sorted(data.model_fields_set)})

    def delete_okr(self, actor: User, okr_id: int):
        okr = self.get_okr(okr_id)
        owner_may_delete = okr.user_id == actor.id and okr.status == OKRStatus.DRAFT.value and not okr.archived
        if not (owner_may_delete or is_admin(actor)):
            raise AuthorizationError("Only the owner of a draft or an administrator can delete an OKR.")

        before = _snapshot(okr)
        owner_id, title = okr.user_id, okr.title
        self.db.delete(okr)
        self._commit()
        self.log_info(f"OKR {okr_id} deleted by user {actor.id}")
        self.audit.record(
            actor_id=actor.id, actor_role=actor.role, action="delete", module=MODULE,
            entity_type="okr", entity_id=okr_id, details={"title": title}, before_state=before,
        )
        self._publish(okr_id, "delete", actor, owner_id, None)

    # --- creation approval ---

    def submit(self, actor: User, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self.permissions.require_owner(actor, okr)
        self._require_status(okr, "submit", OKRStatus.DRAFT)
        validate_structure(okr)

        before = _snapshot(okr)
        if actor.role in settings.workflow.executive_roles:
            okr.status = OKRStatus.PUBLISHED.value
        else:
            okr.status = OKRStatus.PENDING_L1_CREATE.value
        return self._persist(okr, actor, "submit", before)

    def approve_creation(self, actor: User, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "approve", *CREATION_STATUSES)
        roles = self.permissions.roles(okr)
        self.permissions.require_creation_approver(actor, okr, roles)

        before = _snapshot(okr)
        if okr.status == OKRStatus.PENDING_L1_CREATE.value:
            okr.creation_approved_l1_at = _now()
            okr.status = OKRStatus.PENDING_L2_CREATE.value if roles.l2 else OKRStatus.PUBLISHED.value
        else:
            okr.creation_approved_l2_at = _now()
            okr.status = OKRStatus.PUBLISHED.value
        return self._persist(okr, actor, "approve_creation", before)

    def reject_creation(self, actor: User, okr_id: int, reason: Optional[str] = None,
                        expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "reject", *CREATION_STATUSES)
        self.permissions.require_creation_approver(actor, okr, self.permissions.roles(okr))

        before = _snapshot(okr)
        okr.status = OKRStatus.DRAFT.value
        okr.creation_approved_l1_at = None
        okr.creation_approved_l2_at = None
        return self._persist(okr, actor, "reject_creation", before, details={"reason": (reason or "").strip()})

    # --- self assessment ---

    def save_self_assessment(self, actor: User, okr_id: int, data: SelfAssessmentUpdate) -> OKR:
        okr = self._load(okr_id, data.expected_version)
        self.permissions.require_owner(actor, okr)
        self._require_status(okr, "self-assess", OKRStatus.PUBLISHED)
        objectives, key_results = self._index(okr, data.objectives, data.key_results)

        for item in data.key_results:
            kr = key_results[item.id]
            if item.self_score is not None:
                kr.self_score = item.self_score
            if item.self_comment is not None:
                kr.self_comment = item.self_comment
        for item in data.objectives:
            if item.self_comment is not None:
                objectives[item.id].self_comment = item.self_comment
        if data.overall_comment is not None:
            okr.self_comment = data.overall_comment
        scoring.recompute_self(okr)
        return self._persist(okr, actor, "save_self_assessment")

    def submit_self_assessment(self, actor: User, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self.permissions.require_owner(actor, okr)
        self._require_status(okr, "submit self-assessment for", OKRStatus.PUBLISHED)
        missing = missing_self_comments(okr)
        if missing:
            raise ValidationError(
                "Every key result, objective and the overall summary need a self-assessment comment.",
                details={"missing": missing},
            )

        before = _snapshot(okr)
        scoring.recompute_self(okr)
        okr.status = OKRStatus.PENDING_L1_ASSESS.value
        return self._persist(okr, actor, "submit_self_assessment", before)

    # --- manager assessment ---

    def score_assessment(self, actor: User, okr_id: int, data: ManagerScoreUpdate) -> OKR:
        """
        Save manager scores and comments. The first-level assessor scores;
        higher-level reviewers may revise scores at their own stage but cannot
        clear every score.
        """
        okr = self._load(okr_id, data.expected_version)
        self._require_status(okr, "score", *ASSESSMENT_STATUSES)
        if okr.status == OKRStatus.PENDING_L1_ASSESS.value:
            allowed = self.permissions.can_act_l1_assessment(actor, okr)
        else:
            allowed = self.permissions.can_act_at_stage(actor, okr)
        if is_admin(actor) or not allowed:
            raise AuthorizationError(f"User {actor.id} cannot score OKR {okr.id}.")
        objectives, key_results = self._index(okr, data.objectives, data.key_results)

        if okr.status != OKRStatus.PENDING_L1_ASSESS.value and not _keeps_a_score(okr, data):
            raise ValidationError("A higher-level review cannot clear every score.")

        before = _snapshot(okr)
        for item in data.key_results:
            kr = key_results[item.id]
            if "manager_score" in item.model_fields_set:
                kr.manager_score = item.manager_score
            if item.manager_comment is not None:
                kr.manager_comment = item.manager_comment
        for item in data.objectives:
            objective = objectives[item.id]
            if "manager_score" in item.model_fields_set:
                objective.manager_override = item.manager_score
            if item.manager_comment is not None:
                objective.manager_comment = item.manager_comment
        if data.overall_comment is not None:
            okr.manager_comment = data.overall_comment
        scoring.recompute_manager(okr, self.grading.get_bands())
        return self._persist(okr, actor, "score_assessment", before)

    def adjust_grade(self, actor: User, okr_id: int, grade: str, reason: Optional[str] = None,
                     expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "adjust the grade of", *ASSESSMENT_STATUSES, OKRStatus.PENDING_ARCHIVE)

        if okr.status == OKRStatus.PENDING_ARCHIVE.value:
            allowed = self.permissions.can_veto(actor, okr)
        else:
            allowed = self.permissions.can_act_at_stage(actor, okr)
        if not allowed:
            raise AuthorizationError(f"User {actor.id} cannot adjust the grade of OKR {okr.id}.")

        bands = self.grading.get_bands()
        grade = (grade or "").strip()
        known = {b.grade for b in bands} | {settings.workflow.default_grade}
        if grade not in known:
            raise ValidationError(f"Unknown grade {grade!r}.", details={"grades": sorted(known)})
        cross_level = okr.status != OKRStatus.PENDING_L1_ASSESS.value
        if cross_level and _blank(reason):
            raise ValidationError("A reason is required when adjusting a grade above the first level.")

        before = _snapshot(okr)
        okr.final_grade = grade
        if not _blank(reason):
            okr.adjustment_reason = reason.strip()
        return self._persist(okr, actor, "adjust_grade", before, details={"grade": grade, "reason": reason})

    def add_feedback(self, actor: User, okr_id: int, comment: str,
                     recommended_grade: Optional[str] = None) -> CCFeedback:
        okr = self.get_okr(okr_id)
        if okr.archived or okr.status not in _FEEDBACK_STATUSES:
            raise InvalidTransitionError("comment on", okr.status, archived=okr.archived)
        if not self.permissions.is_feedback_contributor(actor, okr):
            raise AuthorizationError(f"User {actor.id} is not invited to comment on OKR {okr.id}.")
        if _blank(comment):
            raise ValidationError("Feedback comment cannot be empty.")

        entry = next((f for f in okr.cc_feedback if f.user_id == actor.id), None)
        if entry is None:
            entry = CCFeedback(user_id=actor.id)
            okr.cc_feedback.append(entry)
        entry.user_name = actor.name
        entry.role = actor.role
        entry.comment = comment.strip()
        entry.recommended_grade = recommended_grade or None
        entry.created_at = _now()
        self._persist(okr, actor, "add_feedback", details={"recommended_grade": recommended_grade})
        return entry

    def approve_assessment(self, actor: User, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "approve the assessment of", *ASSESSMENT_STATUSES)
        roles = self.permissions.roles(okr)
        self.permissions.require_assessment_approver(actor, okr, roles)

        before = _snapshot(okr)
        if okr.status == OKRStatus.PENDING_L1_ASSESS.value:
            if not okr.is_scored:
                raise ValidationError("Score the assessment before approving it.")
            if is_top_executive(actor) or not roles.l2:
                okr.status = OKRStatus.PENDING_ARCHIVE.value
            else:
                okr.status = OKRStatus.PENDING_L2_ASSESS.value
        elif okr.status == OKRStatus.PENDING_L2_ASSESS.value:
            okr.status = OKRStatus.PENDING_L3_ASSESS.value if roles.l3 else OKRStatus.PENDING_ARCHIVE.value
        else:
            okr.status = OKRStatus.PENDING_ARCHIVE.value
        return self._persist(okr, actor, "approve_assessment", before)

    def reject_assessment(self, actor: User, okr_id: int, reason: str,
                          expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "reject the assessment of", OKRStatus.PENDING_L2_ASSESS, OKRStatus.PENDING_L3_ASSESS)
        self.permissions.require_assessment_approver(actor, okr, self.permissions.roles(okr))
        if _blank(reason):
            raise ValidationError("A reason is required to send an assessment back.")

        before = _snapshot(okr)
        okr.status = OKRStatus.PENDING_L1_ASSESS.value
        okr.adjustment_reason = reason.strip()
        return self._persist(okr, actor, "reject_assessment", before, details={"reason": okr.adjustment_reason})

    def veto(self, actor: User, okr_id: int, reason: str, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        self._require_status(okr, "veto", OKRStatus.PENDING_ARCHIVE)
        if not self.permissions.can_veto(actor, okr):
            raise AuthorizationError(f"Role {actor.role} has no veto right.")
        if _blank(reason):
            raise ValidationError("A reason is required to veto an assessment.")

        before = _snapshot(okr)
        okr.status = OKRStatus.PENDING_L1_ASSESS.value
        okr.adjustment_reason = reason.strip()
        return self._persist(okr, actor, "veto", before, details={"reason": okr.adjustment_reason})

    # --- closing ---

    def archive(self, actor: User, okr_id: int, expected_version: Optional[int] = None) -> OKR:
        okr = self._load(okr_id, expected_version)
        if not self.permissions.can_archive(actor):
            raise AuthorizationError(f"Role {actor.role} cannot archive results.")
        self._require_status(okr, "archive", OKRStatus.PENDING_ARCHIVE)

        before = _snapshot(okr)
        okr.archived = True
        okr.status = OKRStatus.PUBLISHED.value
        return self._persist(okr, actor, "archive", before)

    def archive_department(self, actor: User, department: str) -> dict:
        """Archive every pending result of a department; each OKR commits on its own."""
        if not self.permissions.can_archive(actor):
            raise AuthorizationError(f"Role {actor.role} cannot archive results.")
        pending = self.db.query(OKR.id).filter(
            OKR.department == department,
            OKR.status == OKRStatus.PENDING_ARCHIVE.value,
            OKR.archived == False,
        ).order_by(OKR.id).all()

        succeeded, failed = [], []
        for (okr_id,) in pending:
            try:
                self.archive(actor, okr_id)
                succeeded.append(okr_id)
            except AppException as e:
                self.log_warning(f"Archive of OKR {okr_id} failed: {e.message}")
                failed.append({"okr_id": okr_id, "code": e.error_code, "message": e.message})
        return {"succeeded": succeeded, "failed": failed}

    def admin_revoke(self, actor: User, okr_id: int, reason: Optional[str] = None) -> OKR:
        okr = self.get_okr(okr_id)
        if not is_admin(actor):
            raise AuthorizationError("Only administrators can revoke an OKR.")
        if okr.status == OKRStatus.DRAFT.value and not okr.archived:
            raise InvalidTransitionError("revoke", okr.status)

        before = _snapshot(okr)
        okr.status = OKRStatus.DRAFT.value
        okr.archived = False
        okr.creation_approved_l1_at = None
        okr.creation_approved_l2_at = None
        okr.total_score = None
        okr.final_grade = None
        return self._persist(okr, actor, "admin_revoke", before, details={"reason": (reason or "").strip()})

    # --- helpers ---

    @staticmethod
    def _index(okr: OKR, objective_items, key_result_items):
        """Map submitted ids onto this OKR's objectives and key results."""
        objectives = {o.id: o for o in okr.objectives}
        key_results = {kr.id: kr for o in okr.objectives for kr in o.key_results}
        unknown = [i.id for i in objective_items if i.id not in objectives]
        unknown += [i.id for i in key_result_items if i.id not in key_results]
        if unknown:
            raise ValidationError(
                f"Items do not belong to OKR {okr.id}.", details={"unknown_ids": unknown}
            )
        return objectives, key_results
