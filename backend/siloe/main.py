import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.deps import close_clients
from .config import get_settings
from .core.errors import SiloeError
from .db.base import SessionLocal, engine, init_db
from .stores.studies import StudyStore

# Ensure logs directory exists
logs_dir = Path(__file__).parent.parent / "logs"
logs_dir.mkdir(exist_ok=True)

# Configure both file and console logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(logs_dir / "siloe.log", encoding="utf-8"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Starting %s %s (environment=%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)
    init_db(engine)
    try:
        await StudyStore(SessionLocal, timeout_s=settings.STORAGE_TIMEOUT_S).purge_expired()
    except SiloeError as e:
        logger.warning("Expired study purge skipped: %s", e)
    try:
        yield
    finally:
        await close_clients()
        try:
            engine.dispose()
        except Exception as e:
            logger.warning("engine.dispose() failed: %s", e)
        # Close logging file handlers to avoid unclosed file warnings during tests
        root_logger = logging.getLogger()
        for h in list(root_logger.handlers):
            if isinstance(h, logging.FileHandler):
                h.flush()
                h.close()
                root_logger.removeHandler(h)


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="Siloe API",
    description="Backend API for Siloe - AI-guided Bible study",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Get settings
settings = get_settings()

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=getattr(settings, "CORS_ORIGIN_REGEX", None),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "Siloe API",
        "environment": get_settings().ENVIRONMENT,
    }


# Import and include routers
from .api.v1.routers import journal, mentor, studies, subscriptions  # noqa: E402

# API v1 routes
app.include_router(mentor.router, prefix="/api/v1")
app.include_router(studies.router, prefix="/api/v1")
app.include_router(subscriptions.router, prefix="/api/v1")
app.include_router(journal.router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    return {"message": "Welcome to Siloe API", "docs": "/api/docs", "version": "0.1.0"}


# Error handlers
@app.exception_handler(SiloeError)
async def siloe_exception_handler(request, exc: SiloeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc)
    content = {"message": exc.message, "kind": exc.kind}
    if exc.cause is not None:
        content["error"] = str(exc.cause)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "kind": "input_error", "error": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
