"""
FastAPI app assembly: logging, middleware, error handlers and router wiring.
"""
import logging
import os
from datetime import datetime, timezone

from fastapi import FastAPI, APIRouter, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


from retailhub.api.errors import error_body
from retailhub.db.database import engine
from retailhub.api.auth import router as auth_router
from retailhub.api.profile import router as profile_router
from retailhub.api.retailers import router as retailers_router
from retailhub.api.wasstrips import router as wasstrips_router
from retailhub.api.onboarding import router as onboarding_router
from retailhub.api.emails import router as emails_router
from retailhub.api.invitations import router as invitations_router
from retailhub.api.tracking import router as tracking_router
from retailhub.api.postcode import router as postcode_router
from retailhub.api.products import router as products_router
from retailhub.api.stripe_payments import router as stripe_router
from retailhub.api.orders import router as orders_router
from retailhub.api.notifications import router as notifications_router
from retailhub.api.settings import router as settings_router
from retailhub.api.commercial import router as commercial_router
from retailhub.api.prospect_invite import router as prospect_invite_router
from retailhub.api.fulfillment import router as fulfillment_router
from retailhub.api.audits import router as audits_router
from retailhub.utils.runtime import dev_mode_active

# Database schema is managed by Alembic migrations.

SERVICE_NAME = "retailhub-service"

app = FastAPI(
    title="RetailHub Service",
    description="API for retailer onboarding, wasstrips applications, payments, commercial outreach and fulfillment.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
try:
    app.router.redirect_slashes = False
except Exception:
    pass

DEFAULT_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
]
extra_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
origins = DEFAULT_ORIGINS + extra_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def _database_ok() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        return False


api_router = APIRouter(prefix="/api")


@api_router.get("/health")
def api_health_check():
    database_ok = _database_ok()
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if database_ok else "degraded",
            "service": SERVICE_NAME,
            "database": "ok" if database_ok else "unavailable",
            "devMode": dev_mode_active(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


for resource_router in (
    auth_router,
    profile_router,
    retailers_router,
    wasstrips_router,
    onboarding_router,
    emails_router,
    invitations_router,
    tracking_router,
    postcode_router,
    products_router,
    stripe_router,
    orders_router,
    notifications_router,
    settings_router,
    commercial_router,
    prospect_invite_router,
    fulfillment_router,
    audits_router,
):
    api_router.include_router(resource_router)

app.include_router(api_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": SERVICE_NAME}
