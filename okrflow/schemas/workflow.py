from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class WorkflowIn(BaseModel):
    approver_role_l1: str = Field(..., min_length=1)
    approver_role_l2: Optional[str] = None
    approver_role_l3: Optional[str] = None
    cc_roles: List[str] = []


class WorkflowResponse(BaseModel):
    target_role: str
    approver_role_l1: str
    approver_role_l2: Optional[str] = None
    approver_role_l3: Optional[str] = None
    cc_roles: List[str] = []
    is_default: bool = False

    model_config = ConfigDict(from_attributes=True)


class ApproverRolesResponse(BaseModel):
    okr_id: int
    l1: Optional[str] = None
    l2: Optional[str] = None
    l3: Optional[str] = None
    cc: List[str] = []


class ResolutionResponse(BaseModel):
    role: str
    department: Optional[str] = None
    user_id: int
    user_name: str
    scope: str
    designated: bool
    candidate_ids: List[int]


class TeamResponsibleResponse(BaseModel):
    names: List[str]
    role: Optional[str] = None
    is_primary: bool = False
    is_error: bool = False

    model_config = ConfigDict(from_attributes=True)


class MatrixCell(BaseModel):
    role: str
    role_label: str
    user_id: Optional[int] = None
    name: Optional[str] = None
    is_primary: bool = False
    error: Optional[str] = None


class MatrixRow(BaseModel):
    role: str
    role_label: str
    cc_names: List[str] = []
    l1: Optional[MatrixCell] = None
    l2: Optional[MatrixCell] = None
    l3: Optional[MatrixCell] = None


class DepartmentMatrix(BaseModel):
    department: str
    team_responsible: TeamResponsibleResponse
    roles: List[MatrixRow]


class HierarchyFlags(BaseModel):
    role: str
    is_cadre: bool
    is_high_level: bool
    can_assess_leaders: bool
    seniority_rank: int


# Resolve forward references for Pydantic V2
DepartmentMatrix.model_rebuild()
