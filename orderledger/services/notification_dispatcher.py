"""
Back-office notification dispatch
Fire-and-forget: a failure here never rolls back the ledger or order change
that triggered it
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from orderledger.models.admin_notification import AdminNotification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Records admin notifications for gift card and order events"""

    def __init__(self, db: Session):
        self.db = db

    def dispatch(
        self,
        type: str,
        title: str,
        message: Optional[str] = None,
        ref: Optional[dict] = None
    ) -> Optional[AdminNotification]:
        """Store a notification; returns None if it could not be stored"""
        try:
            notification = AdminNotification(
                type=type,
                title=title,
                message=message,
                ref=ref
            )

            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)

            return notification

        except Exception as e:
            logger.error(f"Failed to dispatch notification {type}: {e}")

            try:
                self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback after failed notification also failed: {rollback_error}")

            return None

    def recent(self, limit: int = 100) -> list[AdminNotification]:
        """Most recent notifications first"""
        return (
            self.db.query(AdminNotification)
            .order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
            .limit(limit)
            .all()
        )
