from __future__ import annotations

from fastapi.openapi.utils import get_openapi
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.api.v1.router import api_router
from app.core.config import create_app
from app.core.logging import configure_logging
from app.core.settings import settings

# registra Page / ContentBlock en el entity registry
from app.models import content as _content_models  # noqa: F401


app = create_app()
configure_logging(settings.LOG_LEVEL)

# ip_address del metadata de revisiones detrás de proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


def _inject_actor_header_docs(app):
    """
    Documenta en OpenAPI el header X-User-Id con el que el gateway
    identifica al actor de cada revisión.
    """
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=settings.APP_NAME,
            version="1.0.0",
            description="Revision history, publish and revert API",
            routes=app.routes,
        )

        components = openapi_schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["actorHeader"] = {
            "type": "apiKey",
            "in": "header",
            "name": "X-User-Id",
        }
        openapi_schema["security"] = [{"actorHeader": []}]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi


_inject_actor_header_docs(app)

app.include_router(api_router, prefix=settings.API_V1_STR)
