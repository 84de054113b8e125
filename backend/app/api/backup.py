# app/api/backup.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.core.deps import get_backup_scheduler, get_db, require_role
from app.db.models import User
from app.schemas.backup import (
    BackupRunSummary,
    ControlRequest,
    DeliveryResult,
    RunRequest,
    SchedulerInfo,
    SchedulerStatus,
)
from app.services.backup.collections import get_collection_counts
from app.services.backup.errors import BackupInProgressError
from app.services.backup.scheduler import BackupScheduler

router = APIRouter()


def _run(scheduler: BackupScheduler, send_email: bool = True, clean_old: bool = True) -> BackupRunSummary:
    try:
        result = scheduler.trigger_manual(send_email=send_email, clean_old=clean_old)
    except BackupInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return BackupRunSummary.from_result(result)


@router.get("/status", response_model=SchedulerStatus)
def get_status(
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    return scheduler.status()


@router.get("/info", response_model=SchedulerInfo)
def get_info(
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    return scheduler.info()


@router.post("/control")
def control(
    body: ControlRequest,
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    if body.action == "start":
        scheduler.start()
        return {"message": "Backup scheduler started", "status": scheduler.status()}
    if body.action == "stop":
        scheduler.stop()
        return {"message": "Backup scheduler stopped", "status": scheduler.status()}
    if body.action == "restart":
        scheduler.restart()
        return {"message": "Backup scheduler restarted", "status": scheduler.status()}

    summary = _run(scheduler)
    message = "Manual backup completed" if summary.success else "Manual backup failed"
    return {"message": message, "backup": summary}


@router.post("/run", response_model=BackupRunSummary)
def run_backup(
    body: RunRequest,
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    return _run(scheduler, send_email=body.send_email, clean_old=body.clean_old)


@router.delete("/old")
def clean_old_backups(
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    try:
        cleanup = scheduler.clean_old_backups()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Cannot clean backups: {e}")
    message = "Old backups cleaned" if not cleanup.errors else "Old backups cleaned with errors"
    return {"message": message, "deleted_count": cleanup.deleted_count, "errors": cleanup.errors}


@router.get("/probe-transport", response_model=DeliveryResult)
def probe_transport(
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
    _: User = Depends(require_role("admin")),
):
    return scheduler.notifier.send_probe()


@router.get("/collection-counts")
def collection_counts(
    db: Session = Depends(get_db),
    _: User = Depends(require_role("admin")),
):
    return get_collection_counts(db)
