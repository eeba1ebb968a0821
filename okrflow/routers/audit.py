from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from okrflow.database import get_db
from okrflow.models.audit_log import AuditLog
from okrflow.models.user import User
from okrflow.routers.auth_deps import require_admin
from okrflow.schemas.notification import AuditLogResponse

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/", response_model=List[AuditLogResponse])
def list_audit_logs(
    module: Optional[str] = None,
    action: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    query = db.query(AuditLog)
    if module:
        query = query.filter(AuditLog.module == module)
    if action:
        query = query.filter(AuditLog.action == action)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()
