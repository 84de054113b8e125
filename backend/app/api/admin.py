from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from app.core.deps import require_role

router = APIRouter()


@router.get("/metrics")
def metrics(request: Request):
    # Basique, compatible supervision
    scheduler = getattr(request.app.state, "backup_scheduler", None)
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backup_scheduler_running": bool(scheduler and scheduler.is_running),
    }


@router.get("/config")
def get_config(_: str = Depends(require_role("admin"))):
    from app.core.config import settings
    return {
        "BACKUP_DIR": settings.BACKUP_DIR,
        "BACKUP_SCHEDULE": f"{settings.BACKUP_MINUTE} {settings.BACKUP_HOUR} * * *",
        "BACKUP_TIMEZONE": settings.backup_timezone(),
        "BACKUP_RETENTION_DAYS": settings.BACKUP_RETENTION_DAYS,
        "BACKUP_SCHEDULER_ENABLED": settings.BACKUP_SCHEDULER_ENABLED,
        "SMTP_HOST": settings.SMTP_HOST,
        "SMTP_PORT": settings.SMTP_PORT,
        "BACKUP_EMAIL_TO": settings.backup_recipients(),
    }
