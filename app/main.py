import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.routes_api import router as api_router
from app.api.routes_ui import router as ui_router
from app.api.routes_ui import templates
from app.core.config import Settings, get_settings
from app.core.errors import InvalidParameterError, StreamsiteError
from app.services.embed import EmbedService
from app.services.tmdb import TMDBService
from app.services.upstream import UpstreamClient

load_dotenv()

logger = logging.getLogger(__name__)

# Paths
BASE_DIR = Path(__file__).resolve().parent
STATIC_DIR = BASE_DIR / "static"


def _error_response(request: Request, error: StreamsiteError):
    if request.url.path.startswith("/api"):
        return JSONResponse(error.to_dict(), status_code=error.status_code)
    if request.headers.get("HX-Request"):
        # htmx only swaps 2xx responses; the real status travels in a header
        return templates.TemplateResponse(
            request=request,
            name="partials/error.html",
            context={"error": error},
            headers={"X-Error-Status": str(error.status_code)},
        )
    return templates.TemplateResponse(
        request=request,
        name="error.html",
        context={"page_title": "Error", "error": error},
        status_code=error.status_code,
    )


async def streamsite_error_handler(request: Request, exc: StreamsiteError):
    return _error_response(request, exc)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return _error_response(
        request, InvalidParameterError("; ".join(messages) or "invalid request")
    )


async def unknown_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    error = StreamsiteError(str(exc) or exc.__class__.__name__, exc)
    return _error_response(request, error)


def create_app(settings: Settings | None = None, session: Any = None) -> FastAPI:
    """Build the application around one Settings instance.

    ``session`` replaces the niquests session of both upstream clients.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        """Application lifespan context manager."""
        tmdb_client = UpstreamClient(
            "TMDB",
            settings.search_endpoint,
            bearer=settings.bearer_token,
            require_auth=True,
            timeout=settings.request_timeout,
            proxy=settings.proxy,
            session=session,
        )
        embed_client = UpstreamClient(
            "Embed provider",
            settings.movie_endpoint,
            timeout=settings.request_timeout,
            proxy=settings.proxy,
            session=session,
        )
        app.state.settings = settings
        app.state.tmdb = TMDBService(tmdb_client, language=settings.tmdb_language)
        app.state.embed = EmbedService(embed_client)
        try:
            yield
        finally:
            for client in (tmdb_client, embed_client):
                try:
                    await client.aclose()
                except Exception as e:
                    logger.error(f"Error closing {client.name} session: {e}")

    app = FastAPI(
        title="Streamsite",
        description="Server-rendered movie and TV browser backed by TMDB",
        version="0.1.0",
        debug=settings.debug,
        lifespan=app_lifespan,
    )

    # Mount static files
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    app.add_exception_handler(StreamsiteError, streamsite_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unknown_error_handler)

    # Include routers
    app.include_router(ui_router)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
