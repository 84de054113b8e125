# app/services/backup/pipeline.py
from datetime import datetime, timezone

from app.core.logging import get_logger
from app.schemas.backup import BackupRun, DeliveryResult, PipelineResult
from app.services.backup.exporter import BackupExporter
from app.services.backup.notifier import BackupNotifier
from app.services.backup.retention import RetentionManager
from app.utils.formatting import backup_timestamp

logger = get_logger("backup.pipeline")


def run_backup_pipeline(
    exporter: BackupExporter,
    retention: RetentionManager,
    notifier: BackupNotifier,
    send_email: bool = True,
    clean_old: bool = True,
) -> PipelineResult:
    """
    Export → nettoyage → notification, en séquence et sans jamais lever.

    Le nettoyage n'a lieu qu'après un export réussi ; la notification d'échec
    est toujours tentée (sans pièces jointes).
    """
    try:
        run = exporter.export_all()
    except Exception as e:
        logger.error("Unexpected error during backup export", error=str(e), exc_info=True)
        run = BackupRun(
            timestamp=backup_timestamp(datetime.now(timezone.utc)),
            success=False,
            error=str(e),
        )

    result = PipelineResult(run=run)

    if run.success and clean_old:
        try:
            cleanup = retention.clean()
            result.deleted_count = cleanup.deleted_count
            result.cleanup_errors = cleanup.errors
        except Exception as e:
            logger.error("Backup cleanup failed", error=str(e), exc_info=True)
            result.cleanup_errors = [f"Backup cleanup failed: {e}"]
        if result.cleanup_errors:
            # Reprises dans le résumé envoyé par mail
            run.summary = "\n".join(
                [(run.summary or "").rstrip("\n"), "", "Cleanup errors:"]
                + [f"- {error}" for error in result.cleanup_errors]
                + [""]
            )

    if send_email:
        try:
            result.delivery = notifier.notify(run)
        except Exception as e:
            logger.error("Backup notification failed", error=str(e), exc_info=True)
            result.delivery = DeliveryResult(delivered=False, error=str(e))

    if run.success:
        logger.info(
            "Backup pipeline completed",
            timestamp=run.timestamp,
            files=len(run.files),
            deleted_count=result.deleted_count,
            cleanup_errors=len(result.cleanup_errors),
            delivered=result.delivery.delivered if result.delivery else None,
        )
    else:
        logger.error("Backup pipeline failed", timestamp=run.timestamp, error=run.error)
    return result
