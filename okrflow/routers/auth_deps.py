"""
Actor dependencies.

Authentication happens upstream; the gateway forwards the authenticated user
id in ``settings.user_header``. Every engine call receives the resolved
``User`` explicitly.
"""
import logging
from typing import Callable, List, Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from okrflow.core.config import settings
from okrflow.core.exceptions import AuthenticationError, AuthorizationError
from okrflow.core.logging import actor_id_var
from okrflow.database import get_db
from okrflow.models.user import User
from okrflow.services.events import ChangeNotifier
from okrflow.services.notification import NotificationService
from okrflow.services.okr_lifecycle import OKRLifecycleService

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=settings.user_header),
    db: Session = Depends(get_db),
) -> User:
    if not x_user_id or not x_user_id.strip().isdigit():
        logger.warning("Authentication failed: missing or malformed user header")
        raise AuthenticationError()

    user = db.get(User, int(x_user_id))
    if user is None:
        logger.warning(f"Authentication failed: user {x_user_id} not found")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: user {x_user_id} is inactive")
        raise AuthorizationError("User is inactive")

    actor_id_var.set(str(user.id))
    return user


def require_role(allowed_roles: List[str]) -> Callable:
    """
    Dependency factory that checks if the user holds one of the allowed roles.

    Usage:
        @router.get("/audit")
        def list_logs(user: User = Depends(require_role(["ADMIN"]))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise AuthorizationError(f"Access denied. Required roles: {allowed_roles}")
        return current_user
    return role_checker


def require_admin():
    """Shorthand for the configured administrator roles."""
    return require_role(settings.workflow.admin_roles)


def get_notifier(db: Session = Depends(get_db)) -> ChangeNotifier:
    """Per-request notifier with the owner-notification subscriber attached."""
    notifier = ChangeNotifier()
    notifier.subscribe(NotificationService.owner_subscriber(db))
    return notifier


def get_lifecycle(
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> OKRLifecycleService:
    return OKRLifecycleService(db, notifier=notifier)
