from app.schemas.common import isoformat


def serialize_report(report: dict) -> dict:
    return {
        "id": str(report["id"]),
        "date_report": isoformat(report.get("date_report")),
        "type_report": report["type_report"],
        "description": report["description"],
        "user_id": str(report["user_id"]),
        "product_id": str(report["product_id"]),
        "status": report.get("status", "pending"),
        "incidence_id": report.get("incidence_id"),
    }


def list_serialize_reports(reports) -> list:
    return [serialize_report(report) for report in reports]
