"""
EMS Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from ems.api.router import api_router
from ems.core.config import settings
from ems.core.errors import (
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from ems.core.logging import setup_logging
from ems.core.security import hash_password
from ems.db.session import SessionLocal
from ems.models.account import Account, Privilege
from ems.services.audit_service import audit_trail
from ems.services.auth_service import sync_claim_metadata

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme.startswith("sqlite"):
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except Exception:
        return "***"
    return url


app = FastAPI(
    title="EMS Backend",
    description="Employee management: accounts, employees, leave and attendance",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


@app.on_event("startup")
def bootstrap_initial_admin() -> None:
    """Create the initial admin account when no admin exists"""
    db = SessionLocal()
    try:
        if db.query(Account.id).filter(Account.privilege == Privilege.ADMIN.value).first():
            logger.info("Admin account already exists, skipping initial bootstrap")
            return

        admin = Account(
            email=settings.INITIAL_ADMIN_EMAIL.strip().lower(),
            password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
            privilege=Privilege.ADMIN.value,
            app_metadata={},
        )
        sync_claim_metadata(db, admin, commit=False)
        db.add(admin)
        db.commit()
        logger.info("Initial admin account created: %s", admin.email)
        logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    except OperationalError as e:
        db.rollback()
        if "no such table" in str(e).lower() or "does not exist" in str(e).lower():
            logger.warning("Database tables not ready yet, skipping initial bootstrap")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    except Exception as e:
        db.rollback()
        logger.error("Error during initial admin bootstrap: %s", e)
    finally:
        db.close()


@app.on_event("startup")
def start_audit_trail() -> None:
    audit_trail.start()


@app.on_event("shutdown")
def stop_audit_trail() -> None:
    audit_trail.stop()


async def _handle_operational_error(request, exc: Exception):
    if "no such table" in str(exc).lower():
        return JSONResponse(
            status_code=500,
            content={"detail": "Run alembic upgrade head"},
        )
    return await generic_exception_handler(request, exc)


app.add_exception_handler(OperationalError, _handle_operational_error)
