from datetime import datetime, timezone
from typing import List, Optional

from app.config import logger
from app.core.errors import ConflictError, NotFoundError
from app.models.common import parse_enum, require_fields
from app.models.incidence_model import IncidenceStatus
from app.models.product_model import (
    ModerationStatus,
    ProductCreate,
    ProductStatus,
    ProductUpdate,
    validate_location_coords,
)
from app.models.user_model import Actor
from app.services.access import require_admin, require_owner_or_admin


def _guard_restricted(product: dict, status: Optional[str]) -> None:
    # permanently suspended products stay restricted
    if (
        status is not None
        and product.get("moderation_status") == ModerationStatus.PERMANENTLY_SUSPENDED.value
        and status != ProductStatus.RESTRICTED.value
    ):
        raise ConflictError(
            "A permanently suspended product must keep the restricted status",
            {"product_id": product["id"]},
        )


class ProductService:
    """Seller-side product operations and the catalogue views."""

    def __init__(self, store):
        self.store = store

    def _get_or_404(self, product_id: str) -> dict:
        product = self.store.get_by_id("products", product_id)
        if product is None:
            logger.error(f"Product {product_id} not found")
            raise NotFoundError("Product not found", {"id": product_id})
        return product

    def list_products(self) -> List[dict]:
        return self.store.find(
            "products",
            {"status": ProductStatus.ACTIVE.value, "moderation_status": ModerationStatus.ACTIVE.value},
            order=[("created_at", -1)],
        )

    def list_products_moderation(self, actor: Actor) -> List[dict]:
        require_admin(actor)
        products = self.store.find("products", order=[("created_at", -1)])
        logger.info(f"[list_products_moderation] Found {len(products)} products")
        return [
            {**product, "reports": self.store.find("reports", {"product_id": product["id"]})}
            for product in products
        ]

    def list_my_products(self, actor: Actor) -> List[dict]:
        products = self.store.find("products", {"seller_id": actor.id}, order=[("created_at", -1)])
        mapped = []
        for product in products:
            incidences = self.store.find("incidences", {"product_id": product["id"]})
            reports = self.store.find("reports", {"product_id": product["id"]})
            resolved = next(
                (
                    inc
                    for inc in incidences
                    if inc["status"] == IncidenceStatus.RESOLVED.value and inc.get("resolution")
                ),
                None,
            )
            mapped.append(
                {
                    **product,
                    "incidences": incidences,
                    "reports": reports,
                    "has_resolved_incidence": resolved is not None,
                    "incidence_resolution": resolved["resolution"] if resolved else None,
                }
            )
        return mapped

    def get_product(self, product_id: str) -> dict:
        return self._get_or_404(product_id)

    def create_product(self, product: ProductCreate, actor: Actor, images: Optional[List[str]] = None) -> dict:
        require_fields(title=product.title, description=product.description, category_id=product.category_id)
        now = datetime.now(timezone.utc)
        record = self.store.create(
            "products",
            {
                "seller_id": actor.id,
                "title": product.title,
                "description": product.description,
                "price": product.price,
                "category_id": product.category_id,
                "location": product.location,
                "location_coords": validate_location_coords(product.location_coords),
                "images": list(images or []),
                "status": ProductStatus.ACTIVE.value,
                "moderation_status": ModerationStatus.ACTIVE.value,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info(f"Product {record['id']} created by seller {actor.id}")
        return {"message": "Product created successfully", "product": record}

    def update_product(
        self,
        product_id: str,
        update: ProductUpdate,
        actor: Actor,
        add_images: Optional[List[str]] = None,
    ) -> dict:
        existing = self._get_or_404(product_id)
        require_owner_or_admin(actor, existing)

        update_data = update.model_dump(exclude_unset=True, exclude_none=True)
        if "status" in update_data:
            update_data["status"] = ProductStatus(update_data["status"]).value
            _guard_restricted(existing, update_data["status"])
        if "location_coords" in update_data:
            update_data["location_coords"] = validate_location_coords(update_data["location_coords"])

        images = existing.get("images", [])
        remove_urls = update_data.pop("remove_urls", None)
        if remove_urls:
            logger.info(f"Removing images: {remove_urls}")
            images = [img for img in images if img not in remove_urls]
        if add_images:
            images = images + list(add_images)
        update_data["images"] = images
        update_data["updated_at"] = datetime.now(timezone.utc)

        product = self.store.update("products", product_id, update_data)
        logger.info(f"Product {product_id} updated by {actor.id}")
        return {"message": "Product updated successfully", "product": product}

    def update_product_status(self, product_id: str, status, actor: Actor) -> dict:
        new_status = parse_enum(ProductStatus, status, "status")
        existing = self._get_or_404(product_id)
        require_owner_or_admin(actor, existing)
        _guard_restricted(existing, new_status.value)
        product = self.store.update(
            "products", product_id, {"status": new_status.value, "updated_at": datetime.now(timezone.utc)}
        )
        return {"message": "Status updated", "new_status": new_status.value, "product": product}

    def delete_product(self, product_id: str, actor: Actor) -> dict:
        existing = self._get_or_404(product_id)
        require_owner_or_admin(actor, existing)
        self.store.destroy("products", product_id)
        logger.info(f"Product {product_id} deleted by {actor.id}")
        return {"message": "Product deleted", "product": existing}
