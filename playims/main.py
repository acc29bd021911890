import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from playims.config import settings
from playims.dependencies import DbSession
from playims.errors import install_exception_handlers
from playims.routers import auth, invite_keys
from playims.security import require_session_secret

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:  # don't double-add in reloads
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root.addHandler(handler)
    root.setLevel(level.upper())


@asynccontextmanager
async def lifespan(application: FastAPI):
    # Refuse to serve auth routes without a session secret.
    require_session_secret(settings)
    logger.info("PlayIMS auth API starting")
    yield


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    application = FastAPI(title="PlayIMS Auth API", lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(application)

    application.include_router(auth.router)
    application.include_router(invite_keys.router)

    @application.get("/health")
    def health(db: DbSession):
        try:
            db.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except SQLAlchemyError:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy"},
            )

    return application


app = create_app()
