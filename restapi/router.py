"""Application configuration and router setup."""

import logging
from contextlib import asynccontextmanager

import fastapi
from fastapi.middleware import cors

from components.core import config, init_db
from restapi.errors import register_error_handlers
from restapi.endpoints import health_check, loans, user, verification, withdrawal, meeting

settings = config.get_settings()
logger = logging.getLogger(__name__)

TITLE = "Loan Ledger API"
DESCRIPTION = "Loan ledger and request workflow service"


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    if settings.DB_CREATE_SCHEMA:
        await app.state.db_manager.create_all()
    logger.info("%s %s started", TITLE, settings.API_VERSION)
    yield
    await app.state.db_manager.dispose()


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    app = fastapi.FastAPI(
        title=TITLE,
        description=DESCRIPTION,
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # Initialize database
    init_db.init_db(app)
    register_error_handlers(app)

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_check.router)
    app.include_router(user.router)
    app.include_router(loans.router)
    app.include_router(verification.router)
    app.include_router(withdrawal.router)
    app.include_router(meeting.router)

    return app
