"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stellramp import __version__
from stellramp.anchor.results import ErrorKind, RampValidationError
from stellramp.config import get_settings
from stellramp.ledger.database import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, dispose the engine on shutdown."""
    await init_db()
    yield
    await close_db()


async def validation_error_handler(request: Request, exc: RampValidationError) -> JSONResponse:
    """Malformed amounts or currencies on quote endpoints become HTTP 400."""
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "errorKind": ErrorKind.VALIDATION_FAILURE.value,
            "detail": str(exc),
        },
    )


def create_app() -> FastAPI:
    """Create the API with health and anchor routes."""
    settings = get_settings()

    app = FastAPI(
        title="Stellramp API",
        description="Fiat <-> XLM anchor ramp on the Stellar network",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # Browser wallets call the API directly in development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RampValidationError, validation_error_handler)

    from stellramp.api.routes import anchor, health

    app.include_router(health.router, tags=["Health"])
    app.include_router(anchor.router)

    return app


# Default app instance
app = create_app()
