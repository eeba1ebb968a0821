"""
Read interfaces over the user directory and organization catalog.

User and department maintenance belongs to the HR system; this module only
exposes lookups, plus the two admin writes the approval engine depends on:
custom role definitions and primary-approver designations.
"""
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from okrflow.core.exceptions import NotFoundError, ValidationError
from okrflow.models.catalog import Department, RoleDefinition
from okrflow.models.user import User, ApproverDesignation, Role, ROLE_LABELS
from okrflow.models.workflow import ApprovalWorkflow
from okrflow.services.base import BaseService


class UserDirectory(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    # --- users ---

    def list_users(self, department: Optional[str] = None, role: Optional[str] = None,
                   include_inactive: bool = False) -> List[User]:
        query = self.db.query(User)
        if not include_inactive:
            query = query.filter(User.is_active == True)
        if department:
            query = query.filter(User.department == department)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.id).all()

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def find_user(self, user_id: Optional[int]) -> Optional[User]:
        return self.db.get(User, user_id) if user_id is not None else None

    # --- catalog ---

    def list_departments(self) -> List[str]:
        """Catalog departments plus any department a user is filed under."""
        names = {d.name for d in self.db.query(Department).all()}
        names.update(
            dept for (dept,) in self.db.query(User.department).distinct() if dept
        )
        return sorted(names)

    def list_roles(self) -> List[Dict[str, str]]:
        roles = [{"key": r.value, "label": ROLE_LABELS.get(r, r.value), "builtin": True} for r in Role]
        for definition in self.db.query(RoleDefinition).order_by(RoleDefinition.key).all():
            roles.append({"key": definition.key, "label": definition.label, "builtin": False})
        return roles

    def role_label(self, key: Optional[str]) -> str:
        if not key:
            return "-"
        try:
            return ROLE_LABELS[Role(key)]
        except ValueError:
            definition = self.db.query(RoleDefinition).filter(RoleDefinition.key == key).first()
            return definition.label if definition else key

    def add_role(self, key: str, label: str) -> RoleDefinition:
        key = (key or "").strip().upper()
        label = (label or "").strip()
        if not key or not label:
            raise ValidationError("Role key and label are required.")
        if key in Role.__members__ or self.db.query(RoleDefinition).filter(RoleDefinition.key == key).first():
            raise ValidationError(f"Role {key} already exists.", details={"key": key})

        definition = RoleDefinition(key=key, label=label)
        self.db.add(definition)
        self._commit()
        self.db.refresh(definition)
        self.log_info(f"Custom role {key} added")
        return definition

    def delete_role(self, key: str):
        """Delete a custom role together with its workflow entry."""
        if key in Role.__members__:
            raise ValidationError("Built-in roles cannot be deleted.", details={"key": key})
        definition = self.db.query(RoleDefinition).filter(RoleDefinition.key == key).first()
        if definition is None:
            raise NotFoundError("Role", key)

        self.db.query(ApprovalWorkflow).filter(
            ApprovalWorkflow.target_role == key
        ).delete(synchronize_session=False)
        self.db.delete(definition)
        self._commit()
        self.log_info(f"Custom role {key} and its workflow deleted")

    # --- primary approver designations ---

    def designation_for(self, department: Optional[str], role: str) -> Optional[ApproverDesignation]:
        if not department:
            return None
        return self.db.query(ApproverDesignation).filter(
            ApproverDesignation.department == department,
            ApproverDesignation.role == role,
        ).first()

    def designate_primary(self, user_id: int) -> ApproverDesignation:
        """
        Make ``user_id`` the primary approver for their own department and
        role, replacing whoever held that designation.
        """
        user = self.get_user(user_id)
        if not user.department:
            raise ValidationError("Only users filed under a department can be designated.")

        designation = self.designation_for(user.department, user.role)
        if designation is None:
            designation = ApproverDesignation(department=user.department, role=user.role)
            self.db.add(designation)
        elif designation.user_id != user.id:
            self.log_info(
                f"Primary {user.role} in {user.department} moves from user {designation.user_id} to {user.id}"
            )
        designation.user_id = user.id
        self._commit()
        self.db.refresh(designation)
        return designation

    def clear_designation(self, department: str, role: str):
        deleted = self.db.query(ApproverDesignation).filter(
            ApproverDesignation.department == department,
            ApproverDesignation.role == role,
        ).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("Designation", f"{department}/{role}")
        self._commit()
