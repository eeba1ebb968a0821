import pytest
import os
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEFAULTS"] = "false"

from okrflow.database import Base, get_db
from okrflow.main import app
from okrflow.models.user import User, Role
from okrflow.models.okr import OKRStatus
from okrflow.schemas.okr import (
    OKRCreate, ObjectiveIn, KeyResultIn, SelfAssessmentUpdate, KeyResultSelfAssessment,
    ObjectiveSelfAssessment, ManagerScoreUpdate, KeyResultScore,
)
from okrflow.services.events import ChangeNotifier
from okrflow.services.okr_lifecycle import OKRLifecycleService
from okrflow.services.scoring import GradingService
from okrflow.services.workflow_registry import WorkflowRegistry
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema per test. Services commit and roll back on their own, so
    tests cannot be wrapped in an outer transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def seeded(db_session):
    """Default workflows and grade bands."""
    WorkflowRegistry(db_session).seed_defaults()
    GradingService(db_session).seed_defaults()
    return db_session


def _user(db, name, role, department):
    user = User(name=name, email=f"{name.lower()}@example.com", role=role.value, department=department)
    db.add(user)
    return user


@pytest.fixture(scope="function")
def people(seeded):
    """
    A small organization:
      Platform: R&D engineer, QA engineer, engineering manager, R&D head
      R&D Center: R&D GM
      Executive Office: VP Technology, President
      People Ops: HRBP, administrator
    """
    db = seeded
    team = SimpleNamespace(
        rd=_user(db, "Riley", Role.RD_EMPLOYEE, "Platform"),
        qa=_user(db, "Quinn", Role.QA_EMPLOYEE, "Platform"),
        tech_manager=_user(db, "Morgan", Role.TECH_MANAGER, "Platform"),
        tech_head=_user(db, "Taylor", Role.TECH_HEAD, "Platform"),
        tech_gm=_user(db, "Glen", Role.TECH_GM, "R&D Center"),
        vp_tech=_user(db, "Vera", Role.VP_TECH, "Executive Office"),
        president=_user(db, "Parker", Role.PRESIDENT, "Executive Office"),
        hrbp=_user(db, "Harper", Role.HRBP, "People Ops"),
        admin=_user(db, "Ada", Role.ADMIN, "People Ops"),
    )
    db.commit()
    return team


@pytest.fixture(scope="function")
def notifier():
    return ChangeNotifier()


@pytest.fixture(scope="function")
def lifecycle(seeded, notifier):
    return OKRLifecycleService(seeded, notifier=notifier)


@pytest.fixture(scope="function")
def okr_payload():
    """Two objectives weighted 60/40, key results summing to 100 each."""
    def _payload(objective_weights=(60, 40), kr_weights=((50, 50), (100,)), **kwargs):
        return OKRCreate(
            title=kwargs.pop("title", "Ship the platform"),
            objectives=[
                ObjectiveIn(
                    content=f"Objective {i + 1}",
                    weight=weight,
                    key_results=[KeyResultIn(content=f"KR {i + 1}.{k + 1}", weight=w) for k, w in enumerate(krs)],
                )
                for i, (weight, krs) in enumerate(zip(objective_weights, kr_weights))
            ],
            **kwargs,
        )
    return _payload


def _fill_self_assessment(lifecycle, owner, okr, score=90):
    return lifecycle.save_self_assessment(owner, okr.id, SelfAssessmentUpdate(
        key_results=[
            KeyResultSelfAssessment(id=kr.id, self_score=score, self_comment="Delivered")
            for objective in okr.objectives for kr in objective.key_results
        ],
        objectives=[ObjectiveSelfAssessment(id=o.id, self_comment="On track") for o in okr.objectives],
        overall_comment="A solid half year",
    ))


def _score_all(lifecycle, manager, okr, score=95):
    return lifecycle.score_assessment(manager, okr.id, ManagerScoreUpdate(
        key_results=[
            KeyResultScore(id=kr.id, manager_score=score, manager_comment="Agreed")
            for objective in okr.objectives for kr in objective.key_results
        ],
        overall_comment="Strong delivery",
    ))


@pytest.fixture(scope="function")
def published_okr(lifecycle, people, okr_payload):
    """Create an OKR and push it through creation approval (admin approves each stage)."""
    def _published(owner=None, **kwargs):
        owner = owner or people.rd
        okr = lifecycle.create_okr(owner, okr_payload(**kwargs))
        lifecycle.submit(owner, okr.id)
        while okr.status != OKRStatus.PUBLISHED.value:
            lifecycle.approve_creation(people.admin, okr.id)
        return okr
    return _published


@pytest.fixture(scope="function")
def assessing_okr(lifecycle, published_okr):
    """An OKR whose self-assessment has been submitted (PENDING_L1_ASSESS)."""
    def _assessing(owner=None, **kwargs):
        okr = published_okr(owner, **kwargs)
        owner = lifecycle.db.get(User, okr.user_id)
        _fill_self_assessment(lifecycle, owner, okr)
        return lifecycle.submit_self_assessment(owner, okr.id)
    return _assessing


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def as_user():
    """Headers identifying the acting user to the API."""
    def _headers(user):
        return {"X-User-Id": str(user.id)}
    return _headers


@pytest.fixture(scope="function")
def self_assess(lifecycle):
    """Fill every self-assessment comment (and score) of an OKR as its owner."""
    def _run(owner, okr, score=90):
        return _fill_self_assessment(lifecycle, owner, okr, score)
    return _run


@pytest.fixture(scope="function")
def score_all(lifecycle):
    """Give every key result the same manager score."""
    def _run(manager, okr, score=95):
        return _score_all(lifecycle, manager, okr, score)
    return _run
