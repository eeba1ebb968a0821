from fastapi import APIRouter
from okrflow.routers import (
    okrs, assessments, workflows, grading, organization, notifications, audit
)

# Centralized API router hub
# Routers are aggregated here; main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(okrs.router, tags=["OKRs"])
api_router.include_router(assessments.router, tags=["Assessments"])
api_router.include_router(workflows.router, tags=["Workflows"])
api_router.include_router(grading.router, tags=["Grading"])
api_router.include_router(organization.router, tags=["Organization"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(audit.router, tags=["Audit"])
