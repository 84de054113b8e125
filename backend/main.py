from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import (
    admin,
    auth,
    backup,
)
from app.core.config import reload_settings, settings
from app.core.logging import setup_logging, CorrelationIdMiddleware, logger
from app.db.base import engine, init_db
from app.services.backup.scheduler import BackupScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    scheduler = BackupScheduler.from_settings(settings, engine, config_loader=reload_settings)
    app.state.backup_scheduler = scheduler
    if settings.BACKUP_SCHEDULER_ENABLED:
        if not scheduler.start():
            logger.warning("Backup scheduler failed to start", error=scheduler.last_error)
    else:
        logger.info("Backup scheduler disabled by configuration")
    try:
        yield
    finally:
        scheduler.shutdown()


setup_logging()

app = FastAPI(
    title="Work Management API",
    description="Backend de gestion des ordres de travail et factures, avec sauvegarde CSV quotidienne",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(backup.router, prefix="/backup", tags=["backup"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
