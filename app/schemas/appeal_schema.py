from app.schemas.common import isoformat


def serialize_appeal(appeal: dict) -> dict:
    return {
        "id": str(appeal["id"]),
        "date_appeals": isoformat(appeal.get("date_appeals")),
        "description": appeal["description"],
        "incidence_id": str(appeal["incidence_id"]),
        "submitted_by": appeal.get("submitted_by"),
        "status": appeal.get("status", "pending"),
        "new_incidence_id": appeal.get("new_incidence_id"),
    }


def list_serialize_appeals(appeals) -> list:
    return [serialize_appeal(appeal) for appeal in appeals]
