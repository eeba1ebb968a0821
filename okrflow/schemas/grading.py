from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class GradeBandSchema(BaseModel):
    grade: str = Field(..., min_length=1)
    min_score: float
    max_score: float
    quota: float = Field(0, ge=0, le=100)
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class GradeBandsUpdate(BaseModel):
    bands: List[GradeBandSchema]


class GradeRow(BaseModel):
    grade: str
    count: int
    percent: float
    quota: float
    target_count: int
    over_quota: bool


class GradeDistribution(BaseModel):
    total: int
    grades: List[GradeRow]


class GradeLookup(BaseModel):
    score: float
    grade: str
