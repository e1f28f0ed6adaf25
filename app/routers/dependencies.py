from functools import lru_cache

from fastapi import Request, HTTPException, Depends

from app.config import logger
from app.core.database import store
from app.core.security import verify_access_token
from app.models.user_model import Actor
from app.services.moderation import ModerationEngine
from app.services.notifications import NotificationDispatcher
from app.services.products import ProductService
from app.websockets.manager import ws_manager


def get_current_user_id(request: Request) -> str:
    # Authorization header first, then the access_token cookie
    auth_header = request.headers.get("Authorization")
    token = None
    if auth_header and " " in auth_header:
        token_type, header_token = auth_header.split(" ", 1)
        if token_type.lower() == "bearer":
            token = header_token
    if not token:
        token = request.cookies.get("access_token")
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = verify_access_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_current_actor(user_id: str = Depends(get_current_user_id)) -> Actor:
    user = store.get_by_id("users", user_id)
    if not user:
        logger.error(f"Authenticated user {user_id} not found")
        raise HTTPException(status_code=401, detail="User not found")
    return Actor(id=user["id"], roles=frozenset(user.get("roles", [])))


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(store, ws_manager)


@lru_cache
def get_engine() -> ModerationEngine:
    return ModerationEngine(store, get_dispatcher())


@lru_cache
def get_product_service() -> ProductService:
    return ProductService(store)
