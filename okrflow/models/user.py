"""
User directory models.

Roles are an open enumeration: the built-in tiers below plus custom keys
registered in ``role_definitions``. ``User.role`` stores the raw key.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from okrflow.database import Base


class Role(str, enum.Enum):
    """
    Built-in organizational roles.

    Executive tier: PRESIDENT, VP_*.
    GM tier: *_GM, GENERAL_OFFICE_DIRECTOR.
    Department heads: BUSINESS_HEAD, TECH_HEAD, QA_HEAD.
    Team managers: QA_MANAGER, TECH_MANAGER.
    """
    EMPLOYEE = "EMPLOYEE"
    RD_EMPLOYEE = "RD_EMPLOYEE"
    QA_EMPLOYEE = "QA_EMPLOYEE"
    QA_MANAGER = "QA_MANAGER"
    PRODUCT_EMPLOYEE = "PRODUCT_EMPLOYEE"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    TECH_MANAGER = "TECH_MANAGER"
    TECH_EXPERT = "TECH_EXPERT"
    GENERAL_OFFICE_DIRECTOR = "GENERAL_OFFICE_DIRECTOR"
    HRBP = "HRBP"
    BUSINESS_HEAD = "BUSINESS_HEAD"
    TECH_HEAD = "TECH_HEAD"
    QA_HEAD = "QA_HEAD"
    PRODUCT_GM = "PRODUCT_GM"
    TECH_GM = "TECH_GM"
    QUALITY_GM = "QUALITY_GM"
    PROJECT_DEPT_GM = "PROJECT_DEPT_GM"
    VP_PRODUCT = "VP_PRODUCT"
    VP_TECH = "VP_TECH"
    VP_MARKET = "VP_MARKET"
    PRESIDENT = "PRESIDENT"
    ADMIN = "ADMIN"


ROLE_LABELS = {
    Role.EMPLOYEE: "Employee",
    Role.RD_EMPLOYEE: "R&D Engineer",
    Role.QA_EMPLOYEE: "QA Engineer",
    Role.QA_MANAGER: "QA Lead",
    Role.PRODUCT_EMPLOYEE: "Product Specialist",
    Role.PROJECT_MANAGER: "Project Manager",
    Role.TECH_MANAGER: "Engineering Manager",
    Role.TECH_EXPERT: "Technical Expert",
    Role.GENERAL_OFFICE_DIRECTOR: "General Office Director",
    Role.HRBP: "HRBP",
    Role.BUSINESS_HEAD: "Business Line Head",
    Role.TECH_HEAD: "Business Line R&D Head",
    Role.QA_HEAD: "QA Department Head",
    Role.PRODUCT_GM: "Product GM",
    Role.TECH_GM: "R&D GM",
    Role.QUALITY_GM: "Quality GM",
    Role.PROJECT_DEPT_GM: "Project Office GM",
    Role.VP_PRODUCT: "VP Product",
    Role.VP_TECH: "VP Technology",
    Role.VP_MARKET: "VP Marketing",
    Role.PRESIDENT: "President",
    Role.ADMIN: "System Administrator",
}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)

    # Built-in Role value or a custom role key
    role = Column(String, nullable=False, index=True, default=Role.EMPLOYEE.value)
    department = Column(String, nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    designations = relationship("ApproverDesignation", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.id} {self.name} ({self.role}@{self.department})>"

    @property
    def is_primary_approver(self) -> bool:
        """True when this user is the designated approver for their own department and role."""
        return any(
            d.department == self.department and d.role == self.role
            for d in self.designations
        )


class ApproverDesignation(Base):
    """
    department × role → user. Breaks ties when several users share an
    approving role within one department.
    """
    __tablename__ = "approver_designations"
    __table_args__ = (UniqueConstraint("department", "role", name="uq_designation_department_role"),)

    id = Column(Integer, primary_key=True, index=True)
    department = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="designations")

    def __repr__(self):
        return f"<ApproverDesignation {self.department}/{self.role} -> {self.user_id}>"
