# app/core/config.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .settings import settings


def _add_cors(app: FastAPI) -> None:
    origins = settings.CORS_ORIGINS
    if not origins:
        return
    # "*" no admite credenciales; el actor viaja en X-User-Id, no en cookies
    wildcard = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    """App base del motor de revisiones; main.py monta routers y middlewares."""
    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url=f"{settings.API_V1_STR}/docs",
    )
    _add_cors(app)
    return app
