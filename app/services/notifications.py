from datetime import datetime, timezone
from typing import List, Optional

from app.config import logger, settings
from app.core.errors import DependencyFailure, NotFoundError, ForbiddenError
from app.models.user_model import Actor, STAFF_ROLES
from app.schemas.notification_schema import serialize_notification
from app.services import policy


class NotificationDispatcher:
    """Persists notifications and forwards them to the live channel.

    Storage is the record of delivery: ``notify`` raises DependencyFailure when
    the row cannot be written. The live push is best effort and any error it
    raises is logged and dropped.
    """

    def __init__(self, store, push_sink, type_id: int = settings.NOTIFICATION_ALERT_TYPE):
        self.store = store
        self.push_sink = push_sink
        self.type_id = type_id

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        product_id: Optional[str] = None,
        report_id: Optional[str] = None,
    ) -> dict:
        notification = self.store.create(
            "notifications",
            {
                "user_id": str(user_id),
                "type_id": self.type_id,
                "title": title,
                "message": message,
                "read": False,
                "product_id": product_id,
                "report_id": report_id,
                "created_at": datetime.now(timezone.utc),
            },
        )
        logger.info(f"Notification {notification['id']} stored for user {user_id}: {title}")
        await self._push(str(user_id), notification)
        return notification

    async def _push(self, user_id: str, notification: dict) -> None:
        payload = {"type": "notification", "data": serialize_notification(notification)}
        try:
            await self.push_sink.send_message(user_id, payload)
        except Exception as e:
            logger.error(f"Live push of notification {notification['id']} to user {user_id} failed: {str(e)}")

    async def notify_safely(self, user_id: str, title: str, message: str, **context) -> Optional[dict]:
        """Like ``notify`` but for side effects that must not undo the caller's write."""
        try:
            return await self.notify(user_id, title, message, **context)
        except DependencyFailure as e:
            logger.error(f"Error sending notification '{title}' to user {user_id}: {e.message}")
            return None

    def staff_recipients(self) -> List[str]:
        staff = self.store.find("users", {"roles": {"$in": STAFF_ROLES}})
        # a user holding both roles is notified once
        return list(dict.fromkeys(user["id"] for user in staff))

    async def report_created(self, report: dict, product: Optional[dict]) -> List[dict]:
        recipients = self.staff_recipients()
        if not recipients:
            logger.warning(f"No moderators found to notify about report {report['id']}")
            return []
        title, message = policy.report_created_message(
            policy.product_label(product, report["product_id"]),
            report["type_report"],
            report["description"],
        )
        delivered = []
        for user_id in recipients:
            notification = await self.notify_safely(
                user_id, title, message, product_id=report["product_id"], report_id=report["id"]
            )
            if notification:
                delivered.append(notification)
        logger.info(f"Report {report['id']} created and {len(delivered)} moderators notified")
        return delivered

    async def incidence_opened(
        self,
        incidence: dict,
        product: Optional[dict],
        auto_suspended: bool,
        report_count: Optional[int] = None,
        assigned_by: Optional[Actor] = None,
    ) -> List[dict]:
        delivered = []
        product_title = policy.product_label(product, incidence["product_id"])
        seller_id = product.get("seller_id") if product else None
        if seller_id:
            title, message = policy.incidence_opened_message(
                product_title, incidence["id"], auto_suspended, report_count
            )
            notification = await self.notify_safely(
                seller_id, title, message, product_id=incidence["product_id"]
            )
            if notification:
                delivered.append(notification)

        assignee = incidence.get("assigned_to")
        if (
            not auto_suspended
            and assigned_by is not None
            and assigned_by.is_admin
            and assignee
            and assignee != assigned_by.id
        ):
            title, message = policy.incidence_assigned_message(product_title, incidence["id"])
            notification = await self.notify_safely(
                assignee, title, message, product_id=incidence["product_id"]
            )
            if notification:
                delivered.append(notification)
        return delivered

    async def incidence_in_review(self, incidence: dict, product: Optional[dict]) -> Optional[dict]:
        if not product:
            return None
        title, message = policy.incidence_in_review_message(
            policy.product_label(product, incidence["product_id"]), incidence["id"]
        )
        return await self.notify_safely(
            product["seller_id"], title, message, product_id=incidence["product_id"]
        )

    async def incidence_resolved(
        self,
        incidence: dict,
        product: Optional[dict],
        resolution,
        is_appeal_review: bool,
        resolution_notes: Optional[str] = None,
    ) -> Optional[dict]:
        if not product:
            return None
        title, message = policy.compose_resolution_notification(
            resolution,
            is_appeal_review,
            policy.product_label(product, incidence["product_id"]),
            resolution_notes,
        )
        return await self.notify_safely(
            product["seller_id"], title, message, product_id=incidence["product_id"]
        )

    def list_for_user(self, actor: Actor) -> List[dict]:
        return self.store.find("notifications", {"user_id": actor.id}, order=[("created_at", -1)])

    def mark_read(self, notification_id: str, actor: Actor) -> dict:
        notification = self.store.get_by_id("notifications", notification_id)
        if not notification:
            raise NotFoundError("Notification not found", {"notification_id": notification_id})
        if notification["user_id"] != actor.id:
            raise ForbiddenError("Not authorized to modify this notification")
        return self.store.update("notifications", notification_id, {"read": True})
