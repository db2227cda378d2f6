import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.settings import settings
from database import create_tables
from limiter import limiter
from logging_config import configure_logging
from routes.events import router as events_router
from routes.recurrence import router as recurrence_router
from service import router as api_router

configure_logging()
logger = logging.getLogger("app")

RATE_LIMIT = settings.RATE_LIMIT

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

if settings.CORS_ORIGINS:
    try:
        allowed_origins = json.loads(settings.CORS_ORIGINS.replace("'", '"'))
        logger.info(f"Loaded CORS origins from env: {allowed_origins}")
    except json.JSONDecodeError:
        logger.warning(f"Could not parse BACKEND_CORS_ORIGINS: {settings.CORS_ORIGINS}")
        allowed_origins = DEFAULT_CORS_ORIGINS
else:
    allowed_origins = DEFAULT_CORS_ORIGINS

logger.info(f"CORS allowed origins: {allowed_origins}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    logger.info("Application started successfully")
    yield
    logger.info("Application stopped")


app = FastAPI(title="BuildPath Backend", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Incoming request: {request.method} {request.url}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


@app.get("/")
@limiter.limit(RATE_LIMIT)
async def read_root(request: Request):
    """A simple health check endpoint."""
    return {"status": "ok"}


@app.get("/health")
async def health_check():
    """Health check endpoint for Kubernetes probes."""
    return {"status": "ok", "service": "buildpath-backend"}


app.include_router(api_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(recurrence_router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
