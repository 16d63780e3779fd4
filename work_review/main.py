"""Work Review: Main FastAPI Application.

Employees submit work entries; authorized reviewers of verified
organizations approve them into immutable, audited records.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core import close_db, configure_logging, get_settings, init_db
from .schemas import ErrorResponse
from .services import WorkReviewError

settings = get_settings()
logger = logging.getLogger(__name__)

# Typed service failures -> HTTP status
ERROR_STATUS_CODES = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "employment_inactive": status.HTTP_403_FORBIDDEN,
    "not_authorized": status.HTTP_403_FORBIDDEN,
    "verification_required": status.HTTP_403_FORBIDDEN,
    "immutable_record": status.HTTP_409_CONFLICT,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    configure_logging()
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    # Startup - skip init_db in production (tables are managed by migrations)
    if settings.environment != "production":
        try:
            await init_db()
        except Exception as e:
            logger.warning(f"Could not initialize database: {e}")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Work Review API

    Verification workflow for employee work entries.

    ### Key Features

    - **One-way approval**: an approved entry is frozen, for everyone.
    - **Hierarchy authorization**: organization admins review everything, assigned managers their teams.
    - **Verified organizations only**: unverified organizations cannot approve or request changes.
    - **Audit trail**: every action is recorded in a hash-chained log.

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.
    The token only identifies the caller; authority comes from reviewer grants.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.exception_handler(WorkReviewError)
async def work_review_exception_handler(request: Request, exc: WorkReviewError):
    """Render typed service failures as ErrorResponse."""
    status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_400_BAD_REQUEST)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.code,
            message=exc.message,
            context=exc.context,
        ).model_dump(mode="json"),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)

    message = "An unexpected error occurred"
    if settings.debug:
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
        ).model_dump(mode="json"),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


def main() -> None:
    uvicorn.run(
        "work_review.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
