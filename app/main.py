import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import (
    BOOTSTRAP_ADMIN_EMAIL,
    BOOTSTRAP_ADMIN_PASSWORD,
    CORS_ORIGINS,
    DATABASE_URL,
    ENV,
)
from app.core.database import Base, SessionLocal, engine
from app.core.logging_setup import configure_logging
from app.core.startup_checks import ensure_migrations_applied, validate_database_environment
from app.middleware.observability import ObservabilityMiddleware
from app.middleware.tenant_rate_limit import TenantRateLimitMiddleware
import app.models  # noqa: F401  garante que os models são importados antes do create_all

from app.routers import auth, contacts, groups, internal_metrics, messages, user_groups, users, whatsapp
from app.services.admin_bootstrap import bootstrap_admin

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
ENVIRONMENT = os.getenv("ENVIRONMENT", ENV).strip().lower()
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG") or Path(__file__).resolve().parents[1] / "alembic.ini")
ROUTERS = (auth, users, user_groups, whatsapp, messages, contacts, groups, internal_metrics)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="WhatsApp Gateway API",
    description="Multi-tenant WhatsApp messaging over WAHA sessions.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TenantRateLimitMiddleware)
app.add_middleware(ObservabilityMiddleware)


def _bootstrap_initial_admin() -> None:
    if not BOOTSTRAP_ADMIN_EMAIL or not BOOTSTRAP_ADMIN_PASSWORD:
        logger.info("%s skipped: BOOTSTRAP_ADMIN_EMAIL/BOOTSTRAP_ADMIN_PASSWORD not set", BOOTSTRAP_PREFIX)
        return

    db = SessionLocal()
    try:
        user, created = bootstrap_admin(
            db,
            email=BOOTSTRAP_ADMIN_EMAIL,
            password=BOOTSTRAP_ADMIN_PASSWORD,
        )
        logger.info(
            "%s %s id=%s tenant_id=%s",
            BOOTSTRAP_PREFIX,
            "created" if created else "exists",
            user.id,
            user.tenant_id,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            # dev: SQLite sem migrations
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_initial_admin()
    except Exception:
        logger.exception("[STARTUP] ERROR startup failed env=%s", ENVIRONMENT)
        raise


for module in ROUTERS:
    app.include_router(module.router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
