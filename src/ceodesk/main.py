"""
CEO Desk

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ceodesk import __version__
from ceodesk.api import router
from ceodesk.config import get_settings
from ceodesk.engine import build_engine
from ceodesk.errors import RegistryLookupError
from ceodesk.registry import close_registry, init_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()

    if settings.debug:
        logging.getLogger("ceodesk").setLevel(logging.DEBUG)

    # Tests may install an engine before startup
    if getattr(app.state, "engine", None) is None:
        registry = await init_registry()
        app.state.engine = build_engine(registry, settings)
        logger.info("Responder registry initialized")

    logger.info(
        f"CEO Desk started",
        extra={
            "instance_id": settings.instance_id,
            "port": settings.port,
            "throttle_enabled": settings.throttle_enabled,
        }
    )

    yield

    await close_registry()
    logger.info("CEO Desk shutdown complete")


# =============================================================================
# Exception Handlers
# =============================================================================

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Flatten {error, message} details into the response body"""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": "http_error", "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected malformed request", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_request", "message": "Invalid request body"},
    )


async def registry_lookup_handler(request: Request, exc: RegistryLookupError):
    logger.error(
        f"Responder not bound: {exc.responder_id}",
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An error occurred processing your request"},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title="CEO Desk",
        description="CEO persona that transparently delegates to specialist personas",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RegistryLookupError, registry_lookup_handler)

    # Include API routes
    app.include_router(router)

    return app


# Create app instance
app = create_app()


def main():
    """Main entry point for CLI"""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "ceodesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()
