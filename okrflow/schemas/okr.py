from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from okrflow.models.okr import OKRLevel


class KeyResultIn(BaseModel):
    content: str = ""
    weight: float = Field(0, ge=0, le=100)


class ObjectiveIn(BaseModel):
    content: str = ""
    weight: float = Field(0, ge=0, le=100)
    key_results: List[KeyResultIn] = []


class OKRCreate(BaseModel):
    title: Optional[str] = None
    level: OKRLevel = OKRLevel.PERSONAL
    period: Optional[str] = None
    parent_okr_id: Optional[int] = None
    peer_reviewers: List[int] = []
    objectives: List[ObjectiveIn] = []


class OKRUpdate(BaseModel):
    title: Optional[str] = None
    period: Optional[str] = None
    parent_okr_id: Optional[int] = None
    peer_reviewers: Optional[List[int]] = None
    objectives: Optional[List[ObjectiveIn]] = None
    expected_version: Optional[int] = None


class VersionedRequest(BaseModel):
    expected_version: Optional[int] = None


class ReasonRequest(VersionedRequest):
    reason: str = ""


class KeyResultSelfAssessment(BaseModel):
    id: int
    self_score: Optional[float] = Field(None, ge=0, le=120)
    self_comment: Optional[str] = None


class ObjectiveSelfAssessment(BaseModel):
    id: int
    self_comment: Optional[str] = None


class SelfAssessmentUpdate(VersionedRequest):
    key_results: List[KeyResultSelfAssessment] = []
    objectives: List[ObjectiveSelfAssessment] = []
    overall_comment: Optional[str] = None


class KeyResultScore(BaseModel):
    id: int
    manager_score: Optional[float] = Field(None, ge=0, le=120)
    manager_comment: Optional[str] = None


class ObjectiveScore(BaseModel):
    id: int
    manager_score: Optional[float] = Field(None, ge=0, le=120)
    manager_comment: Optional[str] = None


class ManagerScoreUpdate(VersionedRequest):
    key_results: List[KeyResultScore] = []
    objectives: List[ObjectiveScore] = []
    overall_comment: Optional[str] = None


class GradeAdjustment(VersionedRequest):
    grade: str
    reason: Optional[str] = None


class FeedbackCreate(BaseModel):
    comment: str
    recommended_grade: Optional[str] = None


class KeyResultResponse(BaseModel):
    id: int
    position: int
    content: str
    weight: float
    self_score: Optional[float] = None
    self_comment: Optional[str] = None
    manager_score: Optional[float] = None
    manager_comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ObjectiveResponse(BaseModel):
    id: int
    position: int
    content: str
    weight: float
    self_score: Optional[float] = None
    self_comment: Optional[str] = None
    manager_score: Optional[float] = None
    manager_override: Optional[float] = None
    manager_comment: Optional[str] = None
    key_results: List[KeyResultResponse] = []

    model_config = ConfigDict(from_attributes=True)


class CCFeedbackResponse(BaseModel):
    id: int
    user_id: int
    user_name: str
    role: str
    comment: str
    recommended_grade: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OKRSummary(BaseModel):
    id: int
    user_id: int
    user_name: str
    department: Optional[str] = None
    level: str
    title: str
    period: Optional[str] = None
    status: str
    archived: bool
    total_score: Optional[float] = None
    final_grade: Optional[str] = None
    version: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OKRResponse(OKRSummary):
    parent_okr_id: Optional[int] = None
    peer_reviewers: List[int] = []
    self_score: Optional[float] = None
    self_comment: Optional[str] = None
    manager_score: Optional[float] = None
    manager_comment: Optional[str] = None
    adjustment_reason: Optional[str] = None
    creation_approved_l1_at: Optional[datetime] = None
    creation_approved_l2_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    objectives: List[ObjectiveResponse] = []
    cc_feedback: List[CCFeedbackResponse] = []


class BatchFailure(BaseModel):
    okr_id: int
    code: str
    message: str


class BatchResult(BaseModel):
    succeeded: List[int] = []
    failed: List[BatchFailure] = []


class TeamPartitions(BaseModel):
    awaiting_self_assessment: List[OKRSummary] = []
    awaiting_my_scoring: List[OKRSummary] = []
    scored_awaiting_submission: List[OKRSummary] = []
    awaiting_higher_approval: List[OKRSummary] = []
    actionable: List[OKRSummary] = []


class BadgeCounts(BaseModel):
    approvals: int
    assessments: int


# Resolve forward references for Pydantic V2
OKRResponse.model_rebuild()
TeamPartitions.model_rebuild()
