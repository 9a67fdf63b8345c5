from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from sweetshop.config import get_settings
from sweetshop.database import engine, Base, SessionLocal
from sweetshop.errors import ShopError
from sweetshop.schemas.common import ErrorResponse
from sweetshop.api import auth, health, purchases, sweets
from sweetshop.services.auth_service import AuthService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def bootstrap_admin() -> None:
    """Create the administrator named by ADMIN_EMAIL/ADMIN_PASSWORD, if configured."""
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        return
    db = SessionLocal()
    try:
        AuthService(db).ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up application...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    bootstrap_admin()

    yield

    # Shutdown
    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Inventory service for a sweet shop.

    - **Catalogue**: list, search and view sweets (any signed-in user)
    - **Purchasing**: buy sweets with overselling protection
    - **Administration**: create, update, delete and restock sweets (admins)

    ## Stock consistency
    Purchases and restocks are single conditional UPDATE statements executed
    by the database, so concurrent requests never oversell or lose an update,
    whichever API instance serves them.

    ## Errors
    Every error body carries a stable `error` kind (`unauthorized`,
    `forbidden`, `not_found`, `conflict`, `insufficient_stock`,
    `invalid_query`, `validation_failed`, `internal_error`) and a `message`.
    """,
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(request: Request, kind: str, message: str, details=None) -> dict:
    body = ErrorResponse(
        error=kind,
        message=message,
        path=request.url.path,
        timestamp=datetime.now(timezone.utc).isoformat(),
        details=details or None,
    )
    return body.model_dump(exclude_none=True)


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    """Single place where service errors become HTTP responses."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.kind, exc.message, exc.details),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body(request, "validation_failed", "Request validation failed", details),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "internal_error", "An unexpected error occurred"),
    )


# Include API routers
app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(sweets.router, prefix=settings.API_PREFIX)
app.include_router(purchases.router, prefix=settings.API_PREFIX)


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": f"{settings.API_PREFIX}/health"
    }
