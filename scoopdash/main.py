import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.jobs.router import router as jobs_router
from .domain.payouts.router import admin_router as admin_payouts_router
from .domain.payouts.router import router as payouts_router
from .domain.reconciliation.router import router as reconciliation_router
from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .routes.cron import router as cron_router
from .routes.customers import router as customers_router
from .routes.employees import router as employees_router
from .routes.messaging import router as messaging_router
from .routes.notifications import router as notifications_router
from .routes.referrals import admin_router as admin_referrals_router
from .routes.referrals import router as referrals_router
from .routes.schedules import admin_router as admin_schedules_router
from .routes.schedules import router as schedules_router
from .routes.stripe_webhooks import router as stripe_webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="ScoopDash API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError raised by a validator
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(employees_router)
app.include_router(jobs_router)
app.include_router(payouts_router)
app.include_router(customers_router)
app.include_router(schedules_router)
app.include_router(messaging_router)
app.include_router(referrals_router)
app.include_router(notifications_router)
app.include_router(admin_router)
app.include_router(admin_payouts_router)
app.include_router(admin_referrals_router)
app.include_router(admin_schedules_router)
app.include_router(reconciliation_router)
app.include_router(cron_router)
app.include_router(stripe_webhooks_router)


@app.get("/")
def root():
    return {"message": "ScoopDash API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
