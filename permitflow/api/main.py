from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from permitflow import __version__
from permitflow.core.config import get_settings
from permitflow.core.logger import setup_logger
from permitflow.api.errors import register_error_handlers
from permitflow.api.routers import applications, groups, health, issues

settings = get_settings()

setup_logger(
    "permitflow",
    level=settings.log_level,
    log_dir=settings.log_dir if settings.file_logging else None,
)

app = FastAPI(
    title=settings.app_name,
    description="Group review and final approval of permit applications",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(health.router)
app.include_router(groups.router, prefix="/api")
app.include_router(applications.router, prefix="/api")
app.include_router(issues.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
