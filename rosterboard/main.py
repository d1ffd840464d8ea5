import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401  registers the tables on Base
from .config import ALLOWED_ORIGINS
from .database import Base, SessionLocal, engine
from .routes.catalog import router as catalog_router
from .routes.schedule_states import router as schedule_states_router
from .routes.schedules import router as schedules_router
from .services.state_service import StateService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        seeded = StateService(db).ensure_states()
    finally:
        db.close()
    logger.info(f"🚀 Rosterboard ready, {len(seeded)} schedule states, CORS origins {ALLOWED_ORIGINS}")
    yield
    logger.info("👋 Rosterboard stopped")


app = FastAPI(title="Rosterboard API", version="1.0.0", lifespan=lifespan)


def _error_fields(exc: RequestValidationError) -> list:
    return [{k: v for k, v in error.items() if k in ("loc", "msg", "type")} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """A missing bearer token surfaces as a header validation error; report it as 401"""
    if any("authorization" in str(error.get("loc", "")).lower() for error in exc.errors()):
        logger.warning(f"🔒 {request.method} {request.url.path} without a bearer token")
        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    logger.warning(f"⚠️ Rejected {request.method} {request.url.path}: {_error_fields(exc)}")
    return JSONResponse(status_code=422, content={"detail": _error_fields(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(catalog_router)
app.include_router(schedules_router)
app.include_router(schedule_states_router)


@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}
