from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from securesign.api.routes import audit, auth, documents, events, health, signatures
from securesign.core.config import settings
from securesign.core.errors import GuestLinkError, SigningError
from securesign.core.logging_setup import logger
from securesign.db.session import init_db
from securesign.services.realtime import DocumentEventHub


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    hub: DocumentEventHub = application.state.event_hub
    hub.start()
    yield
    await hub.shutdown()


def _normalize_origin(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().rstrip("/")
    return cleaned or None


async def signing_error_handler(_: Request, exc: SigningError) -> JSONResponse:
    content: dict[str, object] = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, GuestLinkError):
        content["link_invalid"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        lifespan=lifespan,
    )
    application.state.event_hub = DocumentEventHub()

    origins: list[str] = []
    for item in [*settings.allowed_origins, settings.resolved_public_app_url()]:
        normalized = _normalize_origin(item)
        if normalized and normalized not in origins:
            origins.append(normalized)
    logger.info("CORS origins: %s", origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(SigningError, signing_error_handler)

    application.include_router(health.router, prefix="/health")
    application.include_router(auth.router, prefix=settings.api_prefix)
    application.include_router(documents.router, prefix=settings.api_prefix)
    application.include_router(signatures.router, prefix=settings.api_prefix)
    application.include_router(audit.router, prefix=settings.api_prefix)
    application.include_router(events.router)

    @application.get("/")
    def root() -> dict[str, str]:
        return {"service": settings.project_name}

    return application


app = create_app()
