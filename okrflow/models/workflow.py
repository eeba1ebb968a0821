from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.sql import func
from okrflow.database import Base


class ApprovalWorkflow(Base):
    """Approval chain for employees holding ``target_role``. One row per role."""
    __tablename__ = "approval_workflows"

    id = Column(Integer, primary_key=True, index=True)
    target_role = Column(String, nullable=False, unique=True, index=True)
    approver_role_l1 = Column(String, nullable=False)
    approver_role_l2 = Column(String, nullable=True)
    approver_role_l3 = Column(String, nullable=True)
    # Collaborators invited to comment; never gate a transition
    cc_roles = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        chain = " -> ".join(r for r in (self.approver_role_l1, self.approver_role_l2, self.approver_role_l3) if r)
        return f"<ApprovalWorkflow {self.target_role}: {chain}>"
