from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from okrflow.database import Base


class AuditLog(Base):
    """Append-only operation log."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, nullable=True, index=True)  # None for system actions
    actor_role = Column(String, nullable=True)
    action = Column(String, nullable=False, index=True)
    module = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=True)
    entity_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
