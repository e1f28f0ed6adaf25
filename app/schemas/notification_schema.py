from app.schemas.common import isoformat


def serialize_notification(notification: dict) -> dict:
    return {
        "id": str(notification["id"]),
        "user_id": str(notification["user_id"]),
        "type_id": notification.get("type_id"),
        "title": notification["title"],
        "message": notification["message"],
        "read": notification.get("read", False),
        "product_id": notification.get("product_id"),
        "report_id": notification.get("report_id"),
        "created_at": isoformat(notification.get("created_at")),
    }


def list_serialize_notifications(notifications) -> list:
    return [serialize_notification(notification) for notification in notifications]
