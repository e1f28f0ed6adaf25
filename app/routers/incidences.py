from typing import Optional

from fastapi import APIRouter, Depends

from app.models.incidence_model import IncidenceCreate, IncidenceUpdate
from app.models.user_model import Actor
from app.routers.dependencies import get_current_actor, get_engine
from app.schemas.appeal_schema import list_serialize_appeals
from app.schemas.incidence_schema import list_serialize_incidences, serialize_incidence
from app.schemas.product_schema import serialize_product
from app.services.access import require_moderator_or_admin
from app.services.moderation import ModerationEngine

router = APIRouter()


@router.get("/")
async def get_incidences(
    status: Optional[str] = None,
    assigned_to: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {
        "message": "Incidences retrieved successfully",
        "data": list_serialize_incidences(engine.list_incidences(status, assigned_to)),
    }


@router.get("/user/{user_id}")
async def get_incidences_by_user(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    return {
        "message": "Incidences retrieved successfully",
        "data": list_serialize_incidences(engine.incidences_by_user(user_id)),
    }


@router.get("/{incidence_id}")
async def get_incidence(
    incidence_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    incidence = engine.get_incidence(incidence_id)
    data = serialize_incidence(incidence)
    data["product"] = serialize_product(incidence["product"]) if incidence["product"] else None
    data["appeals"] = list_serialize_appeals(incidence["appeals"])
    return {"message": "Incidence retrieved successfully", "data": data}


@router.post("/", status_code=201)
async def create_incidence(
    incidence: IncidenceCreate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    result = await engine.create_incidence(
        incidence.description,
        incidence.assigned_to,
        incidence.product_id,
        status=incidence.status,
        report_count=incidence.report_count,
        report_id=incidence.report_id,
        appeal_id=incidence.appeal_id,
        is_appeal_review=incidence.is_appeal_review,
        assigned_by=actor,
    )
    return {
        "message": result["message"],
        "data": serialize_incidence(result["incidence"]),
        "auto_suspended": result["auto_suspended"],
    }


@router.patch("/{incidence_id}")
async def update_incidence(
    incidence_id: str,
    update: IncidenceUpdate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    require_moderator_or_admin(actor)
    result = await engine.update_incidence(incidence_id, **update.model_dump(exclude_unset=True))
    return {"message": result["message"], "data": serialize_incidence(result["incidence"])}


@router.delete("/{incidence_id}")
async def delete_incidence(
    incidence_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.delete_incidence(incidence_id, actor)
    return {"message": result["message"], "data": serialize_incidence(result["incidence"])}
