from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from okrflow.database import get_db
from okrflow.models.user import User
from okrflow.routers.auth_deps import get_current_user, require_admin
from okrflow.schemas.organization import DesignationResponse, RoleCreate, RoleResponse, UserResponse
from okrflow.services.audit import AuditService
from okrflow.services.directory import UserDirectory

router = APIRouter(prefix="/organization", tags=["Organization"])


@router.get("/me", response_model=UserResponse)
def current_user_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/users", response_model=List[UserResponse])
def list_users(
    department: Optional[str] = None,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UserDirectory(db).list_users(department=department, role=role)


@router.get("/departments", response_model=List[str])
def list_departments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UserDirectory(db).list_departments()


@router.get("/roles", response_model=List[RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UserDirectory(db).list_roles()


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def add_role(
    payload: RoleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    definition = UserDirectory(db).add_role(payload.key, payload.label)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="add_role",
        module="ORGANIZATION",
        details={"key": definition.key, "label": definition.label},
    )
    return RoleResponse(key=definition.key, label=definition.label, builtin=False)


@router.delete("/roles/{key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    UserDirectory(db).delete_role(key)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="delete_role",
        module="ORGANIZATION",
        details={"key": key},
    )


@router.put("/users/{user_id}/primary", response_model=DesignationResponse)
def designate_primary(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    designation = UserDirectory(db).designate_primary(user_id)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="designate_primary",
        module="ORGANIZATION",
        details={"user_id": user_id, "department": designation.department, "role": designation.role},
    )
    return designation


@router.delete("/designations/{department}/{role}", status_code=status.HTTP_204_NO_CONTENT)
def clear_designation(
    department: str,
    role: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin()),
):
    UserDirectory(db).clear_designation(department, role)
    AuditService(db).record(
        actor_id=current_user.id,
        actor_role=current_user.role,
        action="clear_designation",
        module="ORGANIZATION",
        details={"department": department, "role": role},
    )
