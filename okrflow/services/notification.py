from typing import Optional
from sqlalchemy.orm import Session

from okrflow.models.notification import Notification
from okrflow.models.okr import OKR, OKRStatus
from okrflow.services.events import OKRChangedEvent

# action -> (title, message template, type)
_OWNER_MESSAGES = {
    "approve_creation": ("OKR Approved", "\"{title}\" was approved and is now {status}.", "success"),
    "reject_creation": ("OKR Returned", "\"{title}\" was returned to draft by your approver.", "warning"),
    "approve_assessment": ("Assessment Update", "The assessment of \"{title}\" moved to {status}.", "info"),
    "reject_assessment": ("Assessment Returned", "The assessment of \"{title}\" was sent back for re-scoring.", "warning"),
    "veto": ("Assessment Vetoed", "The assessment of \"{title}\" was vetoed and sent back for re-scoring.", "error"),
    "archive": ("Performance Published", "Your result for \"{title}\" has been archived and published.", "success"),
    "admin_revoke": ("OKR Revoked", "An administrator reset \"{title}\" to draft.", "warning"),
}


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None
    ) -> Notification:
        """
        Internal utility for creating notifications.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link
        )
        db.add(notification)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(notification)
        return notification

    @staticmethod
    def owner_subscriber(db: Session):
        """
        Build a ChangeNotifier callback that tells the OKR owner about
        transitions other people made on their OKR.
        """
        def _notify(event: OKRChangedEvent):
            template = _OWNER_MESSAGES.get(event.action)
            if template is None or event.owner_id is None or event.owner_id == event.actor_id:
                return
            okr = db.get(OKR, event.okr_id)
            if okr is None:
                return
            title, message, kind = template
            status = OKRStatus(okr.status).value
            NotificationService.create_notification(
                db,
                user_id=event.owner_id,
                title=title,
                message=message.format(title=okr.title, status=status),
                type=kind,
                link=f"/okrs/{okr.id}",
            )
        return _notify
