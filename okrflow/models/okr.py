"""
OKR aggregate: OKR → Objective → KeyResult, plus collaborator feedback.

Status and archival are two independent axes. Archiving a cycle sets
``archived`` and returns ``status`` to PUBLISHED.
"""
from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from okrflow.database import Base


class OKRStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_L1_CREATE = "PENDING_L1_CREATE"
    PENDING_L2_CREATE = "PENDING_L2_CREATE"
    PUBLISHED = "PUBLISHED"
    PENDING_L1_ASSESS = "PENDING_L1_ASSESS"
    PENDING_L2_ASSESS = "PENDING_L2_ASSESS"
    PENDING_L3_ASSESS = "PENDING_L3_ASSESS"
    PENDING_ARCHIVE = "PENDING_ARCHIVE"


CREATION_STATUSES = (OKRStatus.PENDING_L1_CREATE, OKRStatus.PENDING_L2_CREATE)
ASSESSMENT_STATUSES = (OKRStatus.PENDING_L1_ASSESS, OKRStatus.PENDING_L2_ASSESS, OKRStatus.PENDING_L3_ASSESS)


class OKRLevel(str, enum.Enum):
    COMPANY = "COMPANY"
    DEPARTMENT = "DEPARTMENT"
    PERSONAL = "PERSONAL"


class OKR(Base):
    __tablename__ = "okrs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_name = Column(String, nullable=False)
    department = Column(String, nullable=True, index=True)

    level = Column(String, nullable=False, default=OKRLevel.PERSONAL.value)
    title = Column(String, nullable=False)
    period = Column(String, nullable=True)

    status = Column(String, nullable=False, default=OKRStatus.DRAFT.value, index=True)
    archived = Column(Boolean, nullable=False, default=False)

    # Alignment link, advisory only
    parent_okr_id = Column(Integer, nullable=True)
    peer_reviewers = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    self_score = Column(Float, nullable=True)
    self_comment = Column(Text, nullable=True)
    manager_score = Column(Float, nullable=True)
    manager_comment = Column(Text, nullable=True)

    total_score = Column(Float, nullable=True)
    final_grade = Column(String, nullable=True)
    adjustment_reason = Column(Text, nullable=True)

    creation_approved_l1_at = Column(DateTime(timezone=True), nullable=True)
    creation_approved_l2_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    objectives = relationship(
        "Objective",
        back_populates="okr",
        order_by="Objective.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    cc_feedback = relationship(
        "CCFeedback",
        back_populates="okr",
        order_by="CCFeedback.created_at",
        cascade="all, delete-orphan",
    )
    owner = relationship("User")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        flag = " archived" if self.archived else ""
        return f"<OKR {self.id} {self.status}{flag} owner={self.user_id}>"

    @property
    def is_scored(self) -> bool:
        """True once the assessor has scored at least one key result or objective."""
        return any(
            objective.manager_override is not None
            or any(kr.manager_score is not None for kr in objective.key_results)
            for objective in self.objectives
        )


class Objective(Base):
    __tablename__ = "objectives"

    id = Column(Integer, primary_key=True, index=True)
    okr_id = Column(Integer, ForeignKey("okrs.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False, default="")
    weight = Column(Float, nullable=False, default=0)

    self_score = Column(Float, nullable=True)
    self_comment = Column(Text, nullable=True)
    manager_score = Column(Float, nullable=True)
    # Set explicitly by the assessor; replaces the key result rollup
    manager_override = Column(Float, nullable=True)
    manager_comment = Column(Text, nullable=True)

    okr = relationship("OKR", back_populates="objectives")
    key_results = relationship(
        "KeyResult",
        back_populates="objective",
        order_by="KeyResult.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )


class KeyResult(Base):
    __tablename__ = "key_results"

    id = Column(Integer, primary_key=True, index=True)
    objective_id = Column(Integer, ForeignKey("objectives.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False, default="")
    weight = Column(Float, nullable=False, default=0)

    self_score = Column(Float, nullable=True)
    self_comment = Column(Text, nullable=True)
    manager_score = Column(Float, nullable=True)
    manager_comment = Column(Text, nullable=True)

    objective = relationship("Objective", back_populates="key_results")


class CCFeedback(Base):
    """One entry per contributing user; resubmitting replaces the previous entry."""
    __tablename__ = "cc_feedback"
    __table_args__ = (UniqueConstraint("okr_id", "user_id", name="uq_feedback_okr_user"),)

    id = Column(Integer, primary_key=True, index=True)
    okr_id = Column(Integer, ForeignKey("okrs.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    user_name = Column(String, nullable=False)
    role = Column(String, nullable=False)
    comment = Column(Text, nullable=False)
    recommended_grade = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    okr = relationship("OKR", back_populates="cc_feedback")
