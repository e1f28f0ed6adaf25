from app.schemas.common import isoformat


def serialize_incidence(incidence: dict) -> dict:
    return {
        "id": str(incidence["id"]),
        "date_incidence": isoformat(incidence.get("date_incidence")),
        "description": incidence["description"],
        "status": incidence["status"],
        "assigned_to": incidence.get("assigned_to"),
        "created_by": incidence.get("created_by"),
        "product_id": str(incidence["product_id"]),
        "report_id": incidence.get("report_id"),
        "appeal_id": incidence.get("appeal_id"),
        "is_appeal_review": incidence.get("is_appeal_review", False),
        "resolution": incidence.get("resolution"),
        "resolution_notes": incidence.get("resolution_notes"),
        "resolved_at": isoformat(incidence.get("resolved_at")),
    }


def list_serialize_incidences(incidences) -> list:
    return [serialize_incidence(incidence) for incidence in incidences]
