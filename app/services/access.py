from app.config import logger
from app.core.errors import ForbiddenError
from app.models.user_model import Actor


def require_owner_or_admin(actor: Actor, product: dict) -> None:
    if actor.is_admin or str(product.get("seller_id")) == str(actor.id):
        return
    logger.warning(
        f"User {actor.id} not authorized to modify product {product.get('id')} (seller: {product.get('seller_id')})"
    )
    raise ForbiddenError(
        "Not authorized: only the seller or an administrator can modify this product",
        {"product_id": product.get("id")},
    )


def require_moderator_or_admin(actor: Actor) -> None:
    if actor.is_admin or actor.is_moderator:
        return
    logger.warning(f"User {actor.id} tried a moderation action without a staff role")
    raise ForbiddenError("Not authorized: only administrators and moderators can do this")


def require_admin(actor: Actor) -> None:
    if actor.is_admin:
        return
    logger.warning(f"User {actor.id} tried an administrator-only action")
    raise ForbiddenError("Not authorized: administrators only")
