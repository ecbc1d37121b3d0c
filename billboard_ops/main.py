import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Models must be imported before create_all sees the metadata
from . import models  # noqa: F401
from .cache import get_cache_stats
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.collectibles import router as collectibles_router
from .domain.listing import router as listing_router
from .redis_client import get_redis_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def ensure_schema() -> None:
    """Create the documents table; a concurrent worker may win the race"""
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("🗄️ Document store schema ready")
    except Exception as e:
        if "already exists" in str(e):
            logger.info("🗄️ Document store schema created by another worker")
        else:
            logger.error(f"❌ Could not create document store schema: {e}")


def check_listing_cache() -> None:
    try:
        get_redis_client()
        logger.info("✅ Listing cache connected")
    except Exception as e:
        logger.warning(f"⚠️ Listing cache offline, pages will be read from the store: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Treasury API starting")
    ensure_schema()
    check_listing_cache()
    yield
    logger.info("👋 Treasury API stopped")


app = FastAPI(title="Billboard Ops Treasury API", version="1.0.0", lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw exception object, which is not JSON serializable
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_errors(exc)
    logger.warning(f"⚠️ Rejected {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} crashed: {e}")
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:5173").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(collectibles_router)
app.include_router(listing_router)


@app.get("/")
def root():
    return {"message": "Billboard Ops Treasury API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Listing cache reachability and latency"""
    try:
        client = get_redis_client()
        started = time.perf_counter()
        client.ping()
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
    except Exception as e:
        return {"status": "degraded", "redis": {"connected": False, "error": str(e)}}

    return {
        "status": "healthy",
        "redis": {"connected": True, "response_time_ms": latency_ms, "cache": get_cache_stats()},
    }
