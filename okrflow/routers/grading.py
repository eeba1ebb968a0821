from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from okrflow.database import get_db
from okrflow.models.okr import OKR
from okrflow.models.user import User
from okrflow.routers.auth_deps import get_current_user, require_admin
from okrflow.schemas.grading import GradeBandSchema, GradeBandsUpdate, GradeDistribution, GradeLookup
from okrflow.services.audit import AuditService
from okrflow.services.scoring import Band, GradingService, determine_grade, grade_distribution

router = APIRouter(prefix="/grading", tags=["Grading"])


@router.get("/bands", response_model=List[GradeBandSchema])
def list_bands(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return GradingService(db).get_bands()


@router.put("/bands", response_model=List[GradeBandSchema])
def save_bands(
    payload: GradeBandsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    bands = [Band(**b.model_dump()) for b in payload.bands]
    saved = GradingService(db).save_bands(bands)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="save_grade_bands",
        module="GRADING",
        details={"bands": [vars(b) for b in saved]},
    )
    return saved


@router.get("/grade", response_model=GradeLookup)
def lookup_grade(
    score: float,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return GradeLookup(score=score, grade=determine_grade(score, GradingService(db).get_bands()))


@router.get("/distribution", response_model=GradeDistribution)
def distribution(
    department: Optional[str] = None,
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(OKR).filter(OKR.total_score.isnot(None))
    if department:
        query = query.filter(OKR.department == department)
    if period:
        query = query.filter(OKR.period == period)
    return grade_distribution(query.all(), GradingService(db).get_bands())
