import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError as PydanticValidationError

from app.config import logger, upload_image
from app.models.product_model import (
    ModerationStatusUpdate,
    ProductCreate,
    ProductStatusUpdate,
    ProductUpdate,
)
from app.models.user_model import Actor
from app.routers.dependencies import get_current_actor, get_engine, get_product_service
from app.schemas.incidence_schema import list_serialize_incidences, serialize_incidence
from app.schemas.product_schema import list_serialize_products, serialize_product
from app.schemas.report_schema import list_serialize_reports
from app.services.moderation import ModerationEngine
from app.services.products import ProductService

router = APIRouter()


async def _upload_files(files: Optional[List[UploadFile]]) -> List[str]:
    images = []
    for file in files or []:
        logger.info(f"Uploading image to cloudinary: {file.filename}")
        image_data = await file.read()
        images.append(await upload_image(image_data))
    return images


def _parse_form(raw: str, model):
    try:
        return model(**json.loads(raw))
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON format")
        raise HTTPException(status_code=400, detail="Invalid JSON format: " + str(e))
    except PydanticValidationError as e:
        logger.error(f"Invalid product payload: {str(e)}")
        raise HTTPException(status_code=400, detail=[err["msg"] for err in e.errors()])


@router.get("/")
async def get_products(products: ProductService = Depends(get_product_service)):
    return {
        "message": "Products retrieved successfully",
        "data": list_serialize_products(products.list_products()),
    }


@router.get("/moderation")
async def get_products_moderation(
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    data = [
        {**serialize_product(product), "reports": list_serialize_reports(product["reports"])}
        for product in products.list_products_moderation(actor)
    ]
    return {"message": "Products retrieved successfully", "data": data}


@router.get("/mine")
async def get_my_products(
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    data = [
        {
            **serialize_product(product),
            "incidences": list_serialize_incidences(product["incidences"]),
            "reports": list_serialize_reports(product["reports"]),
            "has_resolved_incidence": product["has_resolved_incidence"],
            "incidence_resolution": product["incidence_resolution"],
        }
        for product in products.list_my_products(actor)
    ]
    return {"message": "Products retrieved successfully", "data": data}


@router.get("/{product_id}")
async def get_product(product_id: str, products: ProductService = Depends(get_product_service)):
    return {
        "message": "Product retrieved successfully",
        "data": serialize_product(products.get_product(product_id)),
    }


@router.post("/", status_code=201)
async def create_product(
    product: str = Form(...),
    files: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    logger.info("Creating product")
    validated = _parse_form(product, ProductCreate)
    images = await _upload_files(files)
    result = products.create_product(validated, actor, images)
    return {"message": result["message"], "data": serialize_product(result["product"])}


@router.patch("/{product_id}")
async def update_product(
    product_id: str,
    update: str = Form(...),
    add_files: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    logger.info(f"[PATCH /products/{product_id}] Request to update product by user: {actor.id}")
    validated = _parse_form(update, ProductUpdate)
    images = await _upload_files(add_files)
    result = products.update_product(product_id, validated, actor, images)
    return {"message": result["message"], "data": serialize_product(result["product"])}


@router.patch("/{product_id}/status")
async def update_product_status(
    product_id: str,
    body: ProductStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    result = products.update_product_status(product_id, body.status, actor)
    return {
        "message": result["message"],
        "new_status": result["new_status"],
        "data": serialize_product(result["product"]),
    }


@router.patch("/{product_id}/moderation")
async def update_product_moderation(
    product_id: str,
    body: ModerationStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    engine: ModerationEngine = Depends(get_engine),
):
    result = engine.update_product_moderation(product_id, body.moderation_status, actor)
    return {
        "message": result["message"],
        "moderation_status": result["moderation_status"],
        "data": serialize_product(result["product"]),
        "incidence": serialize_incidence(result["incidence"]) if result["incidence"] else None,
        "resolved_incidences": result["resolved_incidences"],
    }


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    actor: Actor = Depends(get_current_actor),
    products: ProductService = Depends(get_product_service),
):
    result = products.delete_product(product_id, actor)
    return {"message": result["message"], "data": serialize_product(result["product"])}
