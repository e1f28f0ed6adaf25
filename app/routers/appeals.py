from fastapi import APIRouter, Depends

from app.models.appeal_model import AppealCreate, AppealUpdate
from app.models.user_model import Actor
from app.routers.dependencies import get_current_actor, get_engine
from app.schemas.appeal_schema import list_serialize_appeals, serialize_appeal
from app.services.access import require_moderator_or_admin
from app.services.moderation import ModerationEngine

router = APIRouter()


@router.get("/")
async def get_appeals(
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {"message": "Appeals retrieved successfully", "data": list_serialize_appeals(engine.list_appeals())}


@router.get("/incidence/{incidence_id}")
async def get_appeals_by_incidence(
    incidence_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {
        "message": "Appeals retrieved successfully",
        "data": list_serialize_appeals(engine.appeals_by_incidence(incidence_id)),
    }


@router.get("/{appeal_id}")
async def get_appeal(
    appeal_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    appeal = engine.get_appeal(appeal_id)
    if appeal.get("submitted_by") != actor.id:
        require_moderator_or_admin(actor)
    return {"message": "Appeal retrieved successfully", "data": serialize_appeal(appeal)}


@router.post("/", status_code=201)
async def create_appeal(
    appeal: AppealCreate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.create_appeal(appeal.incidence_id, appeal.message, actor)
    return {"message": result["message"], "data": serialize_appeal(result["appeal"])}


@router.patch("/{appeal_id}")
async def update_appeal(
    appeal_id: str,
    update: AppealUpdate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.update_appeal(appeal_id, update.message, actor)
    return {"message": result["message"], "data": serialize_appeal(result["appeal"])}


@router.patch("/{appeal_id}/dismiss")
async def dismiss_appeal(
    appeal_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.dismiss_appeal(appeal_id, actor)
    return {"message": result["message"], "data": serialize_appeal(result["appeal"])}


@router.delete("/{appeal_id}")
async def delete_appeal(
    appeal_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.delete_appeal(appeal_id, actor)
    return {"message": result["message"], "data": serialize_appeal(result["appeal"])}
