"""
Score & grade engine.

Rollups are pure functions over the OKR aggregate: key result scores weigh
into an objective score, objective scores weigh into the total. Self and
manager rollups use the same formula on different fields. Grades come from
the configured bands, scanned in order; the first inclusive match wins.
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from sqlalchemy.orm import Session

from okrflow.core.config import settings
from okrflow.core.exceptions import ValidationError
from okrflow.models.grade_band import GradeBand
from okrflow.models.okr import OKR, Objective
from okrflow.services.base import BaseService

SELF = "self"
MANAGER = "manager"
_SOURCES = (SELF, MANAGER)


@dataclass(frozen=True)
class Band:
    grade: str
    min_score: float
    max_score: float
    quota: float = 0
    description: Optional[str] = None

    def contains(self, score: float) -> bool:
        return self.min_score <= score <= self.max_score


DEFAULT_BANDS = [
    Band("S", 100, 120, 20, "Outstanding: far exceeds expectations"),
    Band("A", 90, 99, 60, "Excellent: exceeds expectations"),
    Band("B", 70, 89, 15, "Good: meets expectations"),
    Band("C", 0, 69, 5, "Needs improvement"),
]


def _check_source(source: str):
    if source not in _SOURCES:
        raise ValueError(f"Unknown score source: {source}")


def _round(value: float) -> float:
    return round(value + 1e-9, 1)


def rollup_key_results(objective: Objective, source: str = SELF) -> float:
    """Σ(kr.score × kr.weight / 100). Unscored key results count as 0."""
    _check_source(source)
    total = 0.0
    for kr in objective.key_results:
        score = getattr(kr, f"{source}_score") or 0
        total += score * (kr.weight or 0) / 100
    return _round(total)


def objective_score(objective: Objective, source: str = SELF) -> float:
    if source == MANAGER and objective.manager_override is not None:
        return objective.manager_override
    return rollup_key_results(objective, source)


def rollup_objectives(okr: OKR, source: str = SELF) -> float:
    """Σ(objective score × objective.weight / 100), rounded to one decimal."""
    _check_source(source)
    total = sum(objective_score(o, source) * (o.weight or 0) / 100 for o in okr.objectives)
    return _round(total)


def determine_grade(score: Optional[float], bands: Sequence[Band], default: Optional[str] = None) -> str:
    """Grade of the first band containing ``score``; the default grade otherwise."""
    fallback = default or settings.workflow.default_grade
    if score is None:
        return fallback
    for band in bands:
        if band.contains(score):
            return band.grade
    return fallback


def recompute_self(okr: OKR):
    """Refresh self-assessment rollups on objectives and the OKR."""
    for objective in okr.objectives:
        objective.self_score = rollup_key_results(objective, SELF)
    okr.self_score = rollup_objectives(okr, SELF)


def recompute_manager(okr: OKR, bands: Sequence[Band]):
    """
    Refresh manager rollups, total score and grade.
    Must run after every manager score change; grades are never cached.
    """
    if not okr.is_scored:
        # Comments alone do not make an assessment
        for objective in okr.objectives:
            objective.manager_score = None
        okr.manager_score = okr.total_score = okr.final_grade = None
        return
    for objective in okr.objectives:
        objective.manager_score = objective_score(objective, MANAGER)
    okr.manager_score = rollup_objectives(okr, MANAGER)
    okr.total_score = okr.manager_score
    okr.final_grade = determine_grade(okr.total_score, bands)


def validate_bands(bands: Sequence[Band]):
    if not bands:
        raise ValidationError("At least one grade band is required.")
    grades = [b.grade.strip() for b in bands]
    if any(not g for g in grades):
        raise ValidationError("Every band needs a grade label.")
    if len(set(grades)) != len(grades):
        raise ValidationError("Grade labels must be unique.", details={"grades": grades})
    for band in bands:
        if band.min_score > band.max_score:
            raise ValidationError(
                f"Band {band.grade}: minimum score is above maximum.",
                details={"grade": band.grade, "min_score": band.min_score, "max_score": band.max_score},
            )
        if band.quota < 0:
            raise ValidationError(f"Band {band.grade}: quota cannot be negative.")
    quota_total = sum(b.quota for b in bands)
    if abs(quota_total - 100) > 0.01:
        raise ValidationError(
            f"Band quotas must sum to 100% (currently {quota_total:g}%).",
            details={"quota_total": quota_total},
        )


def grade_distribution(okrs: Iterable[OKR], bands: Sequence[Band]) -> dict:
    """
    Actual vs. target head count per grade for a set of scored OKRs.
    Grades outside the configured bands are reported under their own key.
    """
    scored = [o for o in okrs if o.total_score is not None]
    counts = OrderedDict((b.grade, 0) for b in bands)
    for okr in scored:
        grade = okr.final_grade or determine_grade(okr.total_score, bands)
        counts[grade] = counts.get(grade, 0) + 1

    total = len(scored)
    quotas = {b.grade: b.quota for b in bands}
    rows = []
    for grade, count in counts.items():
        quota = quotas.get(grade, 0)
        target = round(total * quota / 100)
        rows.append({
            "grade": grade,
            "count": count,
            "percent": round(count * 100 / total, 1) if total else 0.0,
            "quota": quota,
            "target_count": target,
            "over_quota": count > target,
        })
    return {"total": total, "grades": rows}


class GradingService(BaseService):
    """Persistence for the configured grade bands."""

    def __init__(self, db: Session):
        super().__init__(db)

    def get_bands(self) -> List[Band]:
        rows = self.db.query(GradeBand).order_by(GradeBand.position, GradeBand.id).all()
        if not rows:
            return list(DEFAULT_BANDS)
        return [Band(r.grade, r.min_score, r.max_score, r.quota, r.description) for r in rows]

    def save_bands(self, bands: Sequence[Band]) -> List[Band]:
        """Replace the band table. Order is the scan order for grading."""
        validate_bands(bands)
        self.db.query(GradeBand).delete(synchronize_session=False)
        for position, band in enumerate(bands):
            self.db.add(GradeBand(
                position=position,
                grade=band.grade.strip(),
                min_score=band.min_score,
                max_score=band.max_score,
                quota=band.quota,
                description=band.description,
            ))
        self._commit()
        self.log_info(f"Grade bands replaced: {[b.grade for b in bands]}")
        return self.get_bands()

    def seed_defaults(self) -> int:
        if self.db.query(GradeBand).count() > 0:
            return 0
        for position, band in enumerate(DEFAULT_BANDS):
            self.db.add(GradeBand(
                position=position,
                grade=band.grade,
                min_score=band.min_score,
                max_score=band.max_score,
                quota=band.quota,
                description=band.description,
            ))
        self._commit()
        return len(DEFAULT_BANDS)
