import enum
from typing import Any, Optional

from okrflow.models.audit_log import AuditLog
from okrflow.services.base import BaseService


class AuditService(BaseService):
    def record(
        self,
        actor_id: Optional[int],
        action: str,
        module: str,
        details: Optional[dict] = None,
        actor_role: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit entry.
        Call *after* the audited change has been committed: the entry gets its
        own commit, and a failure here is logged and swallowed so it never
        undoes or blocks the action itself.
        """
        try:
            entry = AuditLog(
                actor_id=actor_id,
                actor_role=actor_role,
                action=action,
                module=module,
                entity_type=entity_type,
                entity_id=entity_id,
                details=_sanitize(details or {}),
                before_state=_sanitize(before_state),
                after_state=_sanitize(after_state),
            )
            self.db.add(entry)
            self.db.commit()
            return entry
        except Exception as e:
            self.db.rollback()
            self._logger.error(f"FAILED TO AUDIT LOG: {action} ({module}): {e}", exc_info=True)
            return None


def _sanitize(obj: Any):
    """Make nested pydantic models / enums JSON-storable."""
    if obj is None:
        return None
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (int, float, bool)):
        return obj
    return str(obj)
