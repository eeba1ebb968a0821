"""
Organization catalog: departments and custom role definitions.
Maintained by administrators; the lifecycle engine only reads it.
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from okrflow.database import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Department {self.name}>"


class RoleDefinition(Base):
    """Custom roles layered on top of the built-in Role enum."""
    __tablename__ = "role_definitions"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, nullable=False, unique=True, index=True)
    label = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<RoleDefinition {self.key}: {self.label}>"
