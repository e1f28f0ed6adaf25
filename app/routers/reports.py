from fastapi import APIRouter, Depends

from app.models.report_model import ReportCreate
from app.models.user_model import Actor
from app.routers.dependencies import get_current_actor, get_engine
from app.schemas.incidence_schema import serialize_incidence
from app.schemas.report_schema import list_serialize_reports, serialize_report
from app.services.access import require_moderator_or_admin
from app.services.moderation import ModerationEngine

router = APIRouter()


@router.post("/", status_code=201)
async def create_report(
    report: ReportCreate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = await engine.create_report(report.type, report.description, actor.id, report.product_id)
    response = {
        "message": result["message"],
        "data": serialize_report(result["report"]),
        "auto_suspended": result["auto_suspended"],
    }
    if result.get("incidence"):
        response["incidence"] = serialize_incidence(result["incidence"])
    return response


@router.get("/")
async def get_reports(
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {"message": "Reports retrieved successfully", "data": list_serialize_reports(engine.list_reports())}


@router.get("/user/{user_id}")
async def get_reports_by_user(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    if user_id != actor.id:
        require_moderator_or_admin(actor)
    return {
        "message": "Reports retrieved successfully",
        "data": list_serialize_reports(engine.reports_by_user(user_id)),
    }


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {"message": "Report retrieved successfully", "data": serialize_report(engine.get_report(report_id))}


@router.patch("/{report_id}/dismiss")
async def dismiss_report(
    report_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.dismiss_report(report_id, actor)
    return {"message": result["message"], "data": serialize_report(result["report"])}


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.delete_report(report_id, actor)
    return {"message": result["message"], "data": serialize_report(result["report"])}
