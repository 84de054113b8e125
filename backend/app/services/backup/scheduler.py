# app/services/backup/scheduler.py
"""
Planification de la sauvegarde quotidienne.

Une instance de ``BackupScheduler`` est créée au démarrage de l'application et
injectée dans la couche HTTP via ``app.state``. Elle porte l'état du
planificateur (enregistré ou non, dernière exécution) et garantit qu'au plus
un déclencheur est actif et qu'une seule exécution du pipeline tourne à la fois.

Limite connue : deux processus qui démarrent chacun un planificateur
déclencheront chacun leur sauvegarde ; aucun verrou distribué n'est posé.
"""
import threading
import time as time_module
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, Optional

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.logging import get_logger
from app.schemas.backup import (
    BackupRunSummary,
    ConfigValidation,
    PipelineResult,
    RetentionResult,
    SchedulerInfo,
    SchedulerStatus,
)
from app.services.backup.errors import BackupInProgressError
from app.services.backup.exporter import BackupExporter
from app.services.backup.notifier import BackupNotifier, SmtpTransport
from app.services.backup.pipeline import run_backup_pipeline
from app.services.backup.retention import RetentionManager

logger = get_logger("backup.scheduler")

JOB_ID = "daily-database-backup"


class BackupScheduler:
    def __init__(
        self,
        exporter: BackupExporter,
        retention: RetentionManager,
        notifier: BackupNotifier,
        hour: int = 6,
        minute: int = 0,
        timezone_name: str = "Asia/Dhaka",
        restart_delay: float = 1.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], None] = time_module.sleep,
        config_loader: Optional[Callable[[], Any]] = None,
    ):
        self.exporter = exporter
        self.retention = retention
        self.notifier = notifier
        self.hour = hour
        self.minute = minute
        self.timezone = timezone_name
        self.restart_delay = restart_delay
        self.clock = clock
        self._sleep = sleep
        self.config_loader = config_loader

        self.is_running = False
        self.last_run: Optional[BackupRunSummary] = None
        self.last_error: Optional[str] = None

        self._state_lock = threading.RLock()
        self._run_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._job = None

    @classmethod
    def from_settings(cls, settings, engine, transport=None, config_loader=None) -> "BackupScheduler":
        tz_name = settings.backup_timezone()
        recipients = settings.backup_recipients()
        sender = settings.BACKUP_EMAIL_FROM or settings.SMTP_USERNAME or (recipients[0] if recipients else None)
        return cls(
            exporter=BackupExporter(engine, settings.BACKUP_DIR, tz_name=tz_name),
            retention=RetentionManager(settings.BACKUP_DIR, settings.BACKUP_RETENTION_DAYS),
            notifier=BackupNotifier(transport or SmtpTransport.from_settings(settings), sender, recipients, tz_name),
            hour=settings.BACKUP_HOUR,
            minute=settings.BACKUP_MINUTE,
            timezone_name=tz_name,
            restart_delay=settings.BACKUP_RESTART_DELAY_SECONDS,
            config_loader=config_loader,
        )

    @property
    def cron_expression(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    @property
    def schedule_description(self) -> str:
        return f"Daily at {self.hour:02d}:{self.minute:02d} ({self.timezone})"

    @property
    def job(self):
        return self._job

    @property
    def run_in_progress(self) -> bool:
        return self._run_lock.locked()

    def _build_trigger(self) -> CronTrigger:
        return CronTrigger(hour=self.hour, minute=self.minute, timezone=pytz.timezone(self.timezone))

    def start(self) -> bool:
        with self._state_lock:
            if self.is_running:
                logger.info("Backup scheduler is already running", job_id=JOB_ID)
                return True

            try:
                trigger = self._build_trigger()
                scheduler = BackgroundScheduler(timezone=trigger.timezone)
                job = scheduler.add_job(
                    self._scheduled_run,
                    trigger,
                    id=JOB_ID,
                    name="Daily database backup",
                    max_instances=1,
                    coalesce=True,
                    replace_existing=True,
                )
                scheduler.start()
            except Exception as e:
                logger.error("Failed to start backup scheduler", error=str(e), cron=self.cron_expression, timezone=self.timezone)
                self.last_error = str(e)
                self.is_running = False
                return False

            self._scheduler = scheduler
            self._job = job
            self.is_running = True
            self.last_error = None
            logger.info(
                "Backup scheduler started",
                schedule=self.schedule_description,
                next_run_at=self.next_run_at().isoformat(),
            )
            return True

    def stop(self) -> None:
        with self._state_lock:
            if not self.is_running:
                logger.info("Backup scheduler is not running")
                return
            try:
                if self._job is not None:
                    self._job.remove()
                self._scheduler.shutdown(wait=False)
            except Exception as e:
                logger.warning("Error while stopping backup scheduler", error=str(e))
            finally:
                self._scheduler = None
                self._job = None
                self.is_running = False
            logger.info("Backup scheduler stopped")

    def restart(self) -> bool:
        self.stop()
        self._sleep(self.restart_delay)
        reload_error = None
        try:
            self.reload_config()
        except Exception as e:
            # Configuration précédente conservée
            logger.error("Cannot reload backup configuration", error=str(e))
            reload_error = f"Configuration reload failed: {e}"
        started = self.start()
        if reload_error:
            self.last_error = reload_error
        return started

    def reload_config(self) -> None:
        """Relit horaire, fuseau et rétention depuis ``config_loader`` (sans effet s'il est absent)."""
        if self.config_loader is None:
            return
        settings = self.config_loader()
        with self._state_lock:
            self.hour = settings.BACKUP_HOUR
            self.minute = settings.BACKUP_MINUTE
            self.timezone = settings.backup_timezone()
            self.restart_delay = settings.BACKUP_RESTART_DELAY_SECONDS
            self.retention.max_age_days = settings.BACKUP_RETENTION_DAYS
            self.exporter.tz_name = self.timezone
            self.notifier.tz_name = self.timezone
        logger.info("Backup scheduler configuration reloaded", schedule=self.schedule_description)

    def shutdown(self) -> None:
        self.stop()

    def next_run_at(self, now: Optional[datetime] = None) -> datetime:
        tz = pytz.timezone(self.timezone)
        local_now = (now or self.clock()).astimezone(tz)
        at = time(self.hour, self.minute)
        candidate = tz.localize(datetime.combine(local_now.date(), at))
        if candidate <= local_now:
            candidate = tz.localize(datetime.combine(local_now.date() + timedelta(days=1), at))
        return candidate

    def status(self) -> SchedulerStatus:
        with self._state_lock:
            running = self.is_running
        return SchedulerStatus(
            is_running=running,
            next_run_at=self.next_run_at().isoformat() if running else None,
            schedule_description=self.schedule_description,
            cron_expression=self.cron_expression,
            timezone=self.timezone,
            run_in_progress=self.run_in_progress,
            last_run=self.last_run,
            last_error=self.last_error,
        )

    def validate_config(self) -> ConfigValidation:
        try:
            self._build_trigger()
        except Exception as e:
            return ConfigValidation(valid=False, error=str(e))
        return ConfigValidation(valid=True, message="Scheduler configuration is valid")

    def info(self) -> SchedulerInfo:
        status = self.status()
        return SchedulerInfo(
            status=status,
            configuration={
                "cron_pattern": self.cron_expression,
                "timezone": self.timezone,
                "description": self.schedule_description,
                "retention_days": str(self.retention.max_age_days),
                "backup_dir": self.exporter.backup_dir,
            },
            next_execution=status.next_run_at or "Scheduler not running",
            validation=self.validate_config(),
        )

    def trigger_manual(self, send_email: bool = True, clean_old: bool = True) -> PipelineResult:
        logger.info("Manual backup triggered", send_email=send_email, clean_old=clean_old)
        return self._run_pipeline(send_email=send_email, clean_old=clean_old)

    def clean_old_backups(self) -> RetentionResult:
        return self.retention.clean()

    def _run_pipeline(self, send_email: bool = True, clean_old: bool = True) -> PipelineResult:
        if not self._run_lock.acquire(blocking=False):
            raise BackupInProgressError("A backup is already in progress")
        try:
            result = run_backup_pipeline(
                self.exporter,
                self.retention,
                self.notifier,
                send_email=send_email,
                clean_old=clean_old,
            )
            self.last_run = BackupRunSummary.from_result(result)
            return result
        finally:
            self._run_lock.release()

    def _scheduled_run(self) -> None:
        logger.info("Starting scheduled database backup", schedule=self.schedule_description)
        try:
            self._run_pipeline()
        except BackupInProgressError:
            logger.warning("Scheduled backup skipped, another run is in progress")
        except Exception as e:
            logger.error("Error in scheduled backup", error=str(e), exc_info=True)
