from contextlib import asynccontextmanager

import dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

dotenv.load_dotenv()

from app.config import logger
from app.core.database import check_connection
from app.core.errors import ModerationError
from app.routers import appeals, incidences, notifications, products, reports, websocket
from app.schemas.response_schema import AdminResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_connection()
    yield


async def moderation_error_handler(request: Request, exc: ModerationError):
    logger.error(f"[{request.method} {request.url.path}] {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=AdminResponse.error(message=exc.message, code=exc.code, details=exc.details),
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Marketplace Moderation Backend", lifespan=lifespan)
    app.add_exception_handler(ModerationError, moderation_error_handler)
    app.include_router(products.router, prefix="/products", tags=["Products"])
    app.include_router(reports.router, prefix="/reports", tags=["Reports"])
    app.include_router(incidences.router, prefix="/incidences", tags=["Incidences"])
    app.include_router(appeals.router, prefix="/appeals", tags=["Appeals"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
    app.include_router(websocket.router, prefix="/ws", tags=["ws"])

    @app.get("/")
    async def read_root():
        return {"message": "Marketplace moderation backend"}

    return app


app = create_app()

# to start: uvicorn app.main:app --reload
