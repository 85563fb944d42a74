from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from healthcare_portal.config.settings import settings
from healthcare_portal.core.exceptions import PortalError, portal_error_handler
from healthcare_portal.core.middleware import verify_token_middleware
from healthcare_portal.db.base import get_engine, get_session_factory
from healthcare_portal.db.session import set_global_session_factory

# -------------------------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application start-up & shutdown hooks."""
    # ------------------------------------------------------------------ start-up -----
    logger.info("Application startup ...")

    engine = None
    try:
        logger.info("Initializing Database Engine...")
        engine = await get_engine(str(settings.database_url))
        app.state.engine = engine

        session_factory = await get_session_factory(engine)
        app.state.session_factory = session_factory
        set_global_session_factory(session_factory)
        logger.info("DB session factory ready (globally accessible).")
    except Exception as e:
        logger.critical(f"CRITICAL ERROR DURING STARTUP INITIALIZATIONS: {e}", exc_info=True)
        if engine:
            await engine.dispose()
        raise

    yield

    # ------------------------------------------------------------------ shutdown -----
    logger.info("Application shutdown ...")
    if engine:
        try:
            await engine.dispose()
            logger.info("DB engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")

    logger.info("Shutdown complete")


# -------------------------------------------------------------------------------------
# FastAPI application instance
# -------------------------------------------------------------------------------------
app = FastAPI(title=settings.app_name, lifespan=lifespan)

# CORS -------------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(o) for o in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Token -> request.state.user ----------------------------------------------------------
app.middleware("http")(verify_token_middleware)

# Domain errors -> JSON ----------------------------------------------------------------
app.add_exception_handler(PortalError, portal_error_handler)


# ----------------------------------------------------------------- health-check -----
@app.get("/health")
async def health_check(request: Request):
    database = "ready" if getattr(request.app.state, "session_factory", None) else "not initialised"
    return {"status": "ok", "database": database}


# ------------------------------------------------------------------- routes ---------
from healthcare_portal.routes.auth.router import router as auth_router  # noqa: E402
from healthcare_portal.routes.schedules.router import router as schedules_router  # noqa: E402
from healthcare_portal.routes.appointments.router import router as appointments_router  # noqa: E402
from healthcare_portal.routes.users.router import router as users_router  # noqa: E402
from healthcare_portal.routes.departments.router import router as departments_router  # noqa: E402
from healthcare_portal.routes.medical_records.router import router as medical_records_router  # noqa: E402
from healthcare_portal.routes.feedback.router import router as feedback_router  # noqa: E402

app.include_router(auth_router)
app.include_router(schedules_router)
app.include_router(appointments_router)
app.include_router(users_router)
app.include_router(departments_router)
app.include_router(medical_records_router)
app.include_router(feedback_router)
