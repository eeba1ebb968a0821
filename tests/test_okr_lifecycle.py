import pytest
from sqlalchemy.orm import sessionmaker

from okrflow.core.exceptions import (
    AmbiguousApproverError, AuthorizationError, ConcurrencyConflictError,
    InvalidTransitionError, NotFoundError, ValidationError,
)
from okrflow.models.audit_log import AuditLog
from okrflow.models.notification import Notification
from okrflow.models.okr import OKR, OKRLevel, OKRStatus
from okrflow.models.user import User, Role
from okrflow.schemas.okr import (
    ObjectiveIn, KeyResultIn, OKRUpdate, ManagerScoreUpdate, KeyResultScore, ObjectiveScore,
)
from okrflow.services.directory import UserDirectory
from okrflow.services.notification import NotificationService


def _second_tech_head(db):
    user = User(name="Toby", email="toby@example.com", role=Role.TECH_HEAD.value, department="Platform")
    db.add(user)
    db.commit()
    return user


def _to_pending_archive(lifecycle, people, okr, score_all):
    score_all(people.tech_head, okr)
    lifecycle.approve_assessment(people.tech_head, okr.id)
    return lifecycle.approve_assessment(people.tech_gm, okr.id)


# --- creation ---

def test_create_draft_defaults(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload(title=None))
    assert okr.status == OKRStatus.DRAFT.value
    assert okr.archived is False
    assert okr.title == "Riley's Personal OKR"
    assert okr.department == "Platform"
    assert okr.version == 1
    assert [o.position for o in okr.objectives] == [0, 1]


def test_owner_is_dropped_from_peer_reviewers(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(
        people.rd, okr_payload(peer_reviewers=[people.qa.id, people.rd.id, people.qa.id])
    )
    assert okr.peer_reviewers == [people.qa.id]


def test_creation_chain_for_rd_employee(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())

    okr = lifecycle.submit(people.rd, okr.id)
    assert okr.status == OKRStatus.PENDING_L1_CREATE.value

    okr = lifecycle.approve_creation(people.tech_head, okr.id)
    assert okr.status == OKRStatus.PENDING_L2_CREATE.value
    assert okr.creation_approved_l1_at is not None

    okr = lifecycle.approve_creation(people.tech_gm, okr.id)
    assert okr.status == OKRStatus.PUBLISHED.value
    assert okr.creation_approved_l2_at is not None
    assert okr.version == 4


def test_single_level_chain_publishes_after_l1(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.hrbp, okr_payload())
    lifecycle.submit(people.hrbp, okr.id)
    okr = lifecycle.approve_creation(people.president, okr.id)
    assert okr.status == OKRStatus.PUBLISHED.value


def test_executive_submit_publishes_directly(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.vp_tech, okr_payload(level=OKRLevel.COMPANY))
    okr = lifecycle.submit(people.vp_tech, okr.id)
    assert okr.status == OKRStatus.PUBLISHED.value
    assert okr.period.endswith("Full Year")


@pytest.mark.parametrize("objective_weights,kr_weights", [
    ((60, 30), ((50, 50), (100,))),
    ((60, 40), ((50, 40), (100,))),
    ((60, 40), ((50, 50), ())),
    ((), ()),
])
def test_submit_requires_balanced_weights(lifecycle, people, okr_payload, objective_weights, kr_weights):
    okr = lifecycle.create_okr(people.rd, okr_payload(objective_weights, kr_weights))
    with pytest.raises(ValidationError):
        lifecycle.submit(people.rd, okr.id)
    assert lifecycle.get_okr(okr.id).status == OKRStatus.DRAFT.value


def test_only_owner_submits(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    with pytest.raises(AuthorizationError):
        lifecycle.submit(people.tech_head, okr.id)


def test_submit_twice_is_invalid(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    with pytest.raises(InvalidTransitionError):
        lifecycle.submit(people.rd, okr.id)


@pytest.mark.parametrize("actor", ["tech_gm", "qa", "rd", "tech_manager"])
def test_wrong_user_cannot_approve_creation(lifecycle, people, okr_payload, actor):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    with pytest.raises(AuthorizationError):
        lifecycle.approve_creation(getattr(people, actor), okr.id)
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PENDING_L1_CREATE.value


def test_ambiguous_approver_blocks_approval(seeded, lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    _second_tech_head(seeded)

    with pytest.raises(AmbiguousApproverError):
        lifecycle.approve_creation(people.tech_head, okr.id)
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PENDING_L1_CREATE.value

    UserDirectory(seeded).designate_primary(people.tech_head.id)
    okr = lifecycle.approve_creation(people.tech_head, okr.id)
    assert okr.status == OKRStatus.PENDING_L2_CREATE.value


def test_reject_creation_returns_to_draft(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    lifecycle.approve_creation(people.tech_head, okr.id)

    okr = lifecycle.reject_creation(people.tech_gm, okr.id, "Needs sharper key results")
    assert okr.status == OKRStatus.DRAFT.value
    assert okr.creation_approved_l1_at is None


def test_admin_can_approve_any_creation_stage(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    lifecycle.approve_creation(people.admin, okr.id)
    okr = lifecycle.approve_creation(people.admin, okr.id)
    assert okr.status == OKRStatus.PUBLISHED.value


# --- editing ---

def test_update_draft(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    okr = lifecycle.update_okr(people.rd, okr.id, OKRUpdate(
        title="  Rebuilt title ",
        objectives=[ObjectiveIn(content="Only", weight=100, key_results=[KeyResultIn(content="KR", weight=100)])],
    ))
    assert okr.title == "Rebuilt title"
    assert len(okr.objectives) == 1
    assert okr.version == 2


def test_update_rules(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    with pytest.raises(ValidationError):
        lifecycle.update_okr(people.rd, okr.id, OKRUpdate(title="   "))
    with pytest.raises(AuthorizationError):
        lifecycle.update_okr(people.tech_head, okr.id, OKRUpdate(title="Mine now"))

    lifecycle.submit(people.rd, okr.id)
    with pytest.raises(InvalidTransitionError):
        lifecycle.update_okr(people.rd, okr.id, OKRUpdate(title="Too late"))


def test_delete_rules(lifecycle, people, okr_payload):
    draft = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.delete_okr(people.rd, draft.id)
    with pytest.raises(NotFoundError):
        lifecycle.get_okr(draft.id)

    submitted = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, submitted.id)
    with pytest.raises(AuthorizationError):
        lifecycle.delete_okr(people.rd, submitted.id)
    lifecycle.delete_okr(people.admin, submitted.id)
    assert lifecycle.list_okrs(owner_id=people.rd.id) == []


# --- self assessment ---

def test_self_assessment_needs_every_comment(lifecycle, people, published_okr):
    okr = published_okr()
    with pytest.raises(ValidationError) as exc:
        lifecycle.submit_self_assessment(people.rd, okr.id)
    assert "overall" in exc.value.details["missing"]
    assert "O1.KR1" in exc.value.details["missing"]
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PUBLISHED.value


def test_self_assessment_rolls_up(lifecycle, people, published_okr, self_assess):
    okr = published_okr()
    okr = self_assess(people.rd, okr, score=80)
    assert okr.self_score == 80.0
    assert okr.status == OKRStatus.PUBLISHED.value

    okr = lifecycle.submit_self_assessment(people.rd, okr.id)
    assert okr.status == OKRStatus.PENDING_L1_ASSESS.value


def test_self_assessment_rejects_foreign_items(lifecycle, people, published_okr):
    from okrflow.schemas.okr import SelfAssessmentUpdate, KeyResultSelfAssessment
    okr = published_okr()
    with pytest.raises(ValidationError) as exc:
        lifecycle.save_self_assessment(people.rd, okr.id, SelfAssessmentUpdate(
            key_results=[KeyResultSelfAssessment(id=99999, self_comment="x")]
        ))
    assert exc.value.details["unknown_ids"] == [99999]


# --- manager assessment ---

def test_full_assessment_chain(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()

    with pytest.raises(ValidationError):
        lifecycle.approve_assessment(people.tech_head, okr.id)

    okr = score_all(people.tech_head, okr, 95)
    assert okr.total_score == 95.0
    assert okr.final_grade == "A"

    okr = lifecycle.approve_assessment(people.tech_head, okr.id)
    assert okr.status == OKRStatus.PENDING_L2_ASSESS.value

    okr = lifecycle.approve_assessment(people.tech_gm, okr.id)
    assert okr.status == OKRStatus.PENDING_ARCHIVE.value

    okr = lifecycle.archive(people.hrbp, okr.id)
    assert okr.archived is True
    assert okr.status == OKRStatus.PUBLISHED.value


def test_three_level_chain(lifecycle, people, assessing_okr, score_all):
    from okrflow.services.workflow_registry import WorkflowDefinition
    lifecycle.resolver.registry.save_workflow(WorkflowDefinition(
        Role.RD_EMPLOYEE.value, Role.TECH_HEAD.value, Role.TECH_GM.value, Role.VP_TECH.value,
    ))
    okr = assessing_okr()
    score_all(people.tech_head, okr)
    lifecycle.approve_assessment(people.tech_head, okr.id)
    okr = lifecycle.approve_assessment(people.tech_gm, okr.id)
    assert okr.status == OKRStatus.PENDING_L3_ASSESS.value
    okr = lifecycle.approve_assessment(people.vp_tech, okr.id)
    assert okr.status == OKRStatus.PENDING_ARCHIVE.value


def test_scoring_permissions(lifecycle, people, assessing_okr):
    okr = assessing_okr()
    payload = ManagerScoreUpdate(key_results=[
        KeyResultScore(id=kr.id, manager_score=90) for o in okr.objectives for kr in o.key_results
    ])
    for actor in (people.rd, people.admin, people.tech_gm, people.qa):
        with pytest.raises(AuthorizationError):
            lifecycle.score_assessment(actor, okr.id, payload)


def test_clearing_a_score_recomputes(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    okr = score_all(people.tech_head, okr, 100)
    first_kr = okr.objectives[0].key_results[0]
    okr = lifecycle.score_assessment(people.tech_head, okr.id, ManagerScoreUpdate(
        key_results=[KeyResultScore(id=first_kr.id, manager_score=None)]
    ))
    # 60 * 50 / 100 + 40 * 100 / 100
    assert okr.total_score == 70.0
    assert okr.final_grade == "B"


def test_department_primary_may_score(seeded, lifecycle, people, assessing_okr, score_all):
    # QA heads are assessed by the R&D GM; the designated R&D head of the department steps in
    casey = User(name="Casey", email="casey@example.com", role=Role.QA_HEAD.value, department="Platform")
    seeded.add(casey)
    seeded.commit()
    okr = assessing_okr(owner=casey)
    UserDirectory(seeded).designate_primary(people.tech_head.id)
    okr = score_all(people.tech_head, okr, 90)
    assert okr.final_grade == "A"


def test_designation_for_non_cadre_role_grants_no_scoring(seeded, lifecycle, people, assessing_okr):
    okr = assessing_okr()
    directory = UserDirectory(seeded)
    directory.designate_primary(people.tech_manager.id)
    directory.designate_primary(people.qa.id)
    payload = ManagerScoreUpdate(key_results=[
        KeyResultScore(id=kr.id, manager_score=110) for o in okr.objectives for kr in o.key_results
    ])
    for actor in (people.tech_manager, people.qa):
        with pytest.raises(AuthorizationError):
            lifecycle.score_assessment(actor, okr.id, payload)
    assert lifecycle.get_okr(okr.id).total_score is None


def test_comment_only_save_leaves_assessment_unscored(lifecycle, people, assessing_okr):
    okr = assessing_okr()
    okr = lifecycle.score_assessment(people.tech_head, okr.id, ManagerScoreUpdate(overall_comment="Reading it"))
    assert okr.manager_comment == "Reading it"
    assert okr.is_scored is False
    assert okr.total_score is None
    assert okr.final_grade is None
    with pytest.raises(ValidationError):
        lifecycle.approve_assessment(people.tech_head, okr.id)


def test_objective_score_overrides_key_results(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    okr = score_all(people.tech_head, okr, 80)
    first, second = okr.objectives
    okr = lifecycle.score_assessment(people.tech_head, okr.id, ManagerScoreUpdate(
        objectives=[ObjectiveScore(id=first.id, manager_score=100, manager_comment="Beyond the KRs")],
    ))
    # 100 * 60 / 100 + 80 * 40 / 100
    assert okr.total_score == 92.0
    assert okr.final_grade == "A"

    # a later key result change keeps the explicit objective score
    kr = second.key_results[0]
    okr = lifecycle.score_assessment(people.tech_head, okr.id, ManagerScoreUpdate(
        key_results=[KeyResultScore(id=kr.id, manager_score=100)],
    ))
    assert [o.manager_score for o in okr.objectives] == [100, 100.0]
    assert okr.total_score == 100.0

    okr = lifecycle.score_assessment(people.tech_head, okr.id, ManagerScoreUpdate(
        objectives=[ObjectiveScore(id=first.id, manager_score=None)],
    ))
    # 80 * 60 / 100 + 100 * 40 / 100
    assert okr.total_score == 88.0
    assert okr.final_grade == "B"


def test_higher_level_reviewer_revises_scores(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    score_all(people.tech_head, okr, 95)
    okr = lifecycle.approve_assessment(people.tech_head, okr.id)
    assert okr.status == OKRStatus.PENDING_L2_ASSESS.value

    # the previous stage can no longer touch the scores
    with pytest.raises(AuthorizationError):
        score_all(people.tech_head, okr, 100)

    okr = score_all(people.tech_gm, okr, 100)
    assert okr.status == OKRStatus.PENDING_L2_ASSESS.value
    assert okr.final_grade == "S"

    clear_all = ManagerScoreUpdate(key_results=[
        KeyResultScore(id=kr.id, manager_score=None) for o in okr.objectives for kr in o.key_results
    ])
    with pytest.raises(ValidationError):
        lifecycle.score_assessment(people.tech_gm, okr.id, clear_all)
    assert lifecycle.get_okr(okr.id).total_score == 100.0


def test_president_short_circuits_department_okrs(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr(level=OKRLevel.DEPARTMENT)
    score_all(people.president, okr, 100)
    okr = lifecycle.approve_assessment(people.president, okr.id)
    assert okr.status == OKRStatus.PENDING_ARCHIVE.value


def test_adjust_grade(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    score_all(people.tech_head, okr, 95)

    okr = lifecycle.adjust_grade(people.tech_head, okr.id, "S")
    assert okr.final_grade == "S"
    with pytest.raises(ValidationError):
        lifecycle.adjust_grade(people.tech_head, okr.id, "Z")

    lifecycle.approve_assessment(people.tech_head, okr.id)
    with pytest.raises(ValidationError):
        lifecycle.adjust_grade(people.tech_gm, okr.id, "A", reason=" ")
    okr = lifecycle.adjust_grade(people.tech_gm, okr.id, "A", reason="Calibrated against peers")
    assert okr.final_grade == "A"
    assert okr.adjustment_reason == "Calibrated against peers"


def test_reject_assessment_needs_reason(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    score_all(people.tech_head, okr)
    lifecycle.approve_assessment(people.tech_head, okr.id)

    with pytest.raises(ValidationError):
        lifecycle.reject_assessment(people.tech_gm, okr.id, "   ")
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PENDING_L2_ASSESS.value

    okr = lifecycle.reject_assessment(people.tech_gm, okr.id, "Scores look inflated")
    assert okr.status == OKRStatus.PENDING_L1_ASSESS.value
    assert okr.adjustment_reason == "Scores look inflated"


def test_cannot_reject_at_first_level(lifecycle, people, assessing_okr):
    okr = assessing_okr()
    with pytest.raises(InvalidTransitionError):
        lifecycle.reject_assessment(people.tech_head, okr.id, "No")


def test_veto(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    _to_pending_archive(lifecycle, people, okr, score_all)

    with pytest.raises(AuthorizationError):
        lifecycle.veto(people.tech_head, okr.id, "Disagree")
    with pytest.raises(ValidationError):
        lifecycle.veto(people.vp_tech, okr.id, "")
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PENDING_ARCHIVE.value

    okr = lifecycle.veto(people.vp_tech, okr.id, "Out of line with the org distribution")
    assert okr.status == OKRStatus.PENDING_L1_ASSESS.value


def test_feedback_is_one_entry_per_contributor(lifecycle, people, assessing_okr):
    okr = assessing_okr()
    lifecycle.add_feedback(people.tech_manager, okr.id, "Great mentoring", "A")
    lifecycle.add_feedback(people.tech_manager, okr.id, "Great mentoring and delivery", "S")

    okr = lifecycle.get_okr(okr.id)
    assert len(okr.cc_feedback) == 1
    assert okr.cc_feedback[0].comment == "Great mentoring and delivery"
    assert okr.cc_feedback[0].recommended_grade == "S"


def test_feedback_contributors(lifecycle, people, published_okr, self_assess):
    okr = published_okr(peer_reviewers=[people.qa.id])
    self_assess(people.rd, okr)
    lifecycle.submit_self_assessment(people.rd, okr.id)

    lifecycle.add_feedback(people.qa, okr.id, "Reliable partner")
    with pytest.raises(AuthorizationError):
        lifecycle.add_feedback(people.rd, okr.id, "I did great")
    with pytest.raises(AuthorizationError):
        lifecycle.add_feedback(people.hrbp, okr.id, "Not invited")
    with pytest.raises(ValidationError):
        lifecycle.add_feedback(people.qa, okr.id, "  ")


# --- archive & revoke ---

def test_archive_rules(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    with pytest.raises(InvalidTransitionError):
        lifecycle.archive(people.hrbp, okr.id)

    _to_pending_archive(lifecycle, people, okr, score_all)
    with pytest.raises(AuthorizationError):
        lifecycle.archive(people.tech_gm, okr.id)

    lifecycle.archive(people.hrbp, okr.id)
    with pytest.raises(InvalidTransitionError) as exc:
        lifecycle.submit_self_assessment(people.rd, okr.id)
    assert exc.value.details["archived"] is True
    with pytest.raises(InvalidTransitionError):
        lifecycle.add_feedback(people.tech_manager, okr.id, "Late")


def test_archive_department(seeded, lifecycle, people, assessing_okr, score_all):
    first = assessing_okr()
    second = assessing_okr(people.qa)
    for okr in (first, second):
        _to_pending_archive(lifecycle, people, okr, score_all)

    result = lifecycle.archive_department(people.hrbp, "Platform")
    assert result == {"succeeded": [first.id, second.id], "failed": []}
    assert all(o.archived for o in lifecycle.list_okrs(department="Platform"))


def test_admin_revoke(lifecycle, people, assessing_okr, score_all):
    okr = assessing_okr()
    _to_pending_archive(lifecycle, people, okr, score_all)
    lifecycle.archive(people.hrbp, okr.id)

    with pytest.raises(AuthorizationError):
        lifecycle.admin_revoke(people.hrbp, okr.id)

    okr = lifecycle.admin_revoke(people.admin, okr.id, "Wrong cycle")
    assert okr.status == OKRStatus.DRAFT.value
    assert okr.archived is False
    assert okr.total_score is None
    assert okr.final_grade is None

    with pytest.raises(InvalidTransitionError):
        lifecycle.admin_revoke(people.admin, okr.id)


# --- concurrency ---

def test_expected_version_mismatch(lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id, expected_version=1)

    with pytest.raises(ConcurrencyConflictError) as exc:
        lifecycle.approve_creation(people.tech_head, okr.id, expected_version=1)
    assert exc.value.details == {"okr_id": okr.id, "expected_version": 1, "actual_version": 2}
    assert lifecycle.get_okr(okr.id).status == OKRStatus.PENDING_L1_CREATE.value


def test_stale_write_is_rejected(seeded, lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    okr_id = okr.id
    lifecycle.get_okr(okr_id).title  # load version 1 into this session

    other = sessionmaker(bind=seeded.get_bind())()
    theirs = other.get(OKR, okr_id)
    theirs.title = "Their edit"
    other.commit()
    other.close()

    with pytest.raises(ConcurrencyConflictError):
        lifecycle.update_okr(people.rd, okr_id, OKRUpdate(title="My edit"))

    okr = lifecycle.get_okr(okr_id)
    assert okr.title == "Their edit"
    assert okr.version == 2


# --- side effects ---

def test_events_follow_commits(lifecycle, people, notifier, okr_payload):
    seen = []
    unsubscribe = notifier.subscribe(seen.append)

    okr = lifecycle.create_okr(people.rd, okr_payload((50, 40)))
    with pytest.raises(ValidationError):
        lifecycle.submit(people.rd, okr.id)
    lifecycle.update_okr(people.rd, okr.id, OKRUpdate(objectives=[
        ObjectiveIn(content="All in", weight=100, key_results=[KeyResultIn(content="KR", weight=100)])
    ]))
    lifecycle.submit(people.rd, okr.id)

    assert [e.action for e in seen] == ["create", "update", "submit"]
    assert seen[-1].status == OKRStatus.PENDING_L1_CREATE.value
    assert seen[-1].owner_id == people.rd.id

    unsubscribe()
    assert len(notifier) == 0


def test_broken_subscriber_does_not_fail_transition(lifecycle, people, notifier, okr_payload):
    def explode(event):
        raise RuntimeError("dashboard offline")

    notifier.subscribe(explode)
    okr = lifecycle.create_okr(people.rd, okr_payload())
    okr = lifecycle.submit(people.rd, okr.id)
    assert okr.status == OKRStatus.PENDING_L1_CREATE.value


def test_owner_is_notified_of_others_actions(seeded, lifecycle, people, notifier, okr_payload):
    notifier.subscribe(NotificationService.owner_subscriber(seeded))
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)
    assert seeded.query(Notification).count() == 0

    lifecycle.approve_creation(people.tech_head, okr.id)
    notes = seeded.query(Notification).filter(Notification.user_id == people.rd.id).all()
    assert [n.title for n in notes] == ["OKR Approved"]
    assert "PENDING_L2_CREATE" in notes[0].message


def test_transitions_are_audited(seeded, lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    lifecycle.submit(people.rd, okr.id)

    entry = seeded.query(AuditLog).filter(AuditLog.action == "submit", AuditLog.entity_id == okr.id).one()
    assert entry.module == "OKR"
    assert entry.actor_id == people.rd.id
    assert entry.before_state["status"] == OKRStatus.DRAFT.value
    assert entry.after_state["status"] == OKRStatus.PENDING_L1_CREATE.value


def test_failed_transition_leaves_no_audit_entry(seeded, lifecycle, people, okr_payload):
    okr = lifecycle.create_okr(people.rd, okr_payload())
    with pytest.raises(AuthorizationError):
        lifecycle.submit(people.qa, okr.id)
    assert seeded.query(AuditLog).filter(AuditLog.action == "submit").count() == 0
