import logging
import subprocess
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dutytrack.api.auth import router as auth_router
from dutytrack.api.duty import router as duty_router
from dutytrack.api.leaves import router as leaves_router
from dutytrack.api.stats import router as stats_router
from dutytrack.api.users import router as users_router
from dutytrack.core.config import settings
from dutytrack.core.errors import DutyTrackError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parent.parent

_STATUS_BY_KIND = {
    "invalid_argument": status.HTTP_400_BAD_REQUEST,
    "weak_password": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_email": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "precondition_failed": status.HTTP_409_CONFLICT,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "email_in_use": status.HTTP_409_CONFLICT,
    "upstream_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run Alembic migrations on startup."""
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        logger.info("Running Alembic migrations...")
        try:
            result = subprocess.run(
                ["alembic", "upgrade", "head"],
                capture_output=True,
                text=True,
                cwd=_BACKEND_DIR,
            )
            if result.returncode != 0:
                logger.error("Alembic migration failed:\n%s", result.stderr)
            else:
                logger.info("Migrations applied successfully:\n%s", result.stdout)
        except Exception as exc:
            logger.exception("Failed to run migrations: %s", exc)

    yield

    logger.info("Shutting down DutyTrack backend.")


app = FastAPI(
    title="DutyTrack API",
    description="Employee attendance, duty tracking and leave management.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DutyTrackError)
async def dutytrack_error_handler(request: Request, exc: DutyTrackError) -> JSONResponse:
    code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if code >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"kind": exc.kind, "detail": exc.detail})


app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(duty_router, prefix="/api/duty", tags=["Duty"])
app.include_router(leaves_router, prefix="/api/leaves", tags=["Leaves"])
app.include_router(stats_router, prefix="/api/stats", tags=["Stats"])


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    return {"status": "ok"}
