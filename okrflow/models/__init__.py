# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, catalog, workflow, grade_band, okr, audit_log, notification
)

# Explicit class exports for cleaner imports
from .user import User, Role, ApproverDesignation
from .catalog import Department, RoleDefinition
from .workflow import ApprovalWorkflow
from .grade_band import GradeBand
from .okr import OKR, Objective, KeyResult, CCFeedback, OKRStatus, OKRLevel
from .audit_log import AuditLog
from .notification import Notification

__all__ = [
    "User",
    "Role",
    "ApproverDesignation",
    "Department",
    "RoleDefinition",
    "ApprovalWorkflow",
    "GradeBand",
    "OKR",
    "Objective",
    "KeyResult",
    "CCFeedback",
    "OKRStatus",
    "OKRLevel",
    "AuditLog",
    "Notification",
]
