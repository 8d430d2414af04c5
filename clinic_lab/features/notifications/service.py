# Notifications Feature - Service

from typing import Any, Dict, Iterable, Optional
from datetime import datetime
from clinic_lab.config import settings
from clinic_lab.features.auth.models import Actor
from clinic_lab.features.directory.models import Recipient
from clinic_lab.features.directory.service import to_object_id
from clinic_lab.features.notifications.models import Notification, NotificationType
from clinic_lab.features.notifications.schemas import NotificationListResponse, NotificationResponse
from clinic_lab.core.logging import logger
from clinic_lab.shared.exceptions import NotFoundException


class NotificationService:
    """
    Notification sink.

    Delivery is best effort: a failed write is logged and never propagates
    to the operation that triggered it.
    """

    async def deliver(self, notification: Notification) -> None:
        await notification.insert()

    async def notify(
        self,
        recipient: Recipient,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        sender_id: Optional[str] = None,
    ) -> bool:
        """
        Write one notification.

        Returns:
            bool: True if stored, False if the write failed
        """
        notification = Notification(
            recipient_id=recipient.id,
            recipient_kind=recipient.kind,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
        )
        try:
            await self.deliver(notification)
        except Exception as e:
            logger.error(f"❌ Failed to notify {recipient.kind.value} {recipient.id} ('{title}'): {str(e)}")
            return False
        return True

    async def fan_out(
        self,
        recipients: Iterable[Recipient],
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        sender_id: Optional[str] = None,
    ) -> int:
        """Notify every recipient independently. Returns how many were stored."""
        recipients = list(recipients)
        delivered = 0
        for recipient in recipients:
            if await self.notify(recipient, type, title, message, data=data, sender_id=sender_id):
                delivered += 1

        if recipients:
            logger.info(f"✅ '{title}' delivered to {delivered}/{len(recipients)} recipients")
        return delivered

    # ==================== Inbox ====================

    @staticmethod
    def _to_response(notification: Notification) -> NotificationResponse:
        return NotificationResponse(
            id=str(notification.id),
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            data=notification.data,
            read=notification.read,
            read_at=notification.read_at,
            created_at=notification.created_at,
        )

    @staticmethod
    async def list_for(actor: Actor, limit: Optional[int] = None) -> NotificationListResponse:
        """Latest notifications for the caller, newest first."""
        limit = limit or settings.NOTIFICATION_INBOX_LIMIT
        notifications = await Notification.find(
            Notification.recipient_id == actor.id
        ).sort([("created_at", -1)]).limit(limit).to_list()

        unread = await Notification.find(
            Notification.recipient_id == actor.id,
            Notification.read == False
        ).count()

        return NotificationListResponse(
            notifications=[NotificationService._to_response(n) for n in notifications],
            unread=unread,
        )

    @staticmethod
    async def mark_read(notification_id: str, actor: Actor) -> NotificationResponse:
        object_id = to_object_id(notification_id)
        notification = await Notification.get(object_id) if object_id else None

        # Someone else's notification is reported as missing
        if not notification or notification.recipient_id != actor.id:
            raise NotFoundException("Notification not found")

        if not notification.read:
            notification.read = True
            notification.read_at = datetime.utcnow()
            notification.update_timestamp()
            await notification.save()

        return NotificationService._to_response(notification)

    @staticmethod
    async def mark_all_read(actor: Actor) -> int:
        now = datetime.utcnow()
        result = await Notification.find(
            Notification.recipient_id == actor.id,
            Notification.read == False
        ).update_many({"$set": {"read": True, "read_at": now, "updated_at": now}})

        count = result.modified_count if result else 0
        logger.info(f"Marked {count} notifications as read for {actor.kind.value} {actor.id}")
        return count
