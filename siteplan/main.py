from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from siteplan.api.routes import router as api_router
from siteplan.config.settings import get_settings
from siteplan.exceptions import CircularDependencyError, ValidationError
from siteplan.storage.database import init_db
from siteplan.utils.logging_config import setup_logging


# Setup logging
logger = setup_logging()
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Construction schedule analysis and optimization: CPM, resource leveling, compression and what-if",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(CircularDependencyError)
async def circular_dependency_handler(request: Request, exc: CircularDependencyError):
    logger.warning(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc), "activityId": exc.activity_id})


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name}...")
    init_db()
    logger.info("Database initialized")
    logger.info(f"Feasibility threshold: {settings.feasibility_threshold}")
    logger.info(f"Parallel alternatives: {settings.parallel_alternatives} (max {settings.max_workers} workers)")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.app_name}...")

app.include_router(api_router, prefix="/api/v1", tags=["scheduling"])


@app.get("/health", tags=["health"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "ok", "app": settings.app_name, "version": "1.0.0"}
