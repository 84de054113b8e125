# app/services/backup/retention.py
import os
import time
from typing import Optional

from app.core.logging import get_logger
from app.schemas.backup import RetentionResult

logger = get_logger("backup.retention")

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_MAX_AGE_DAYS = 30


def clean_old_backups(backup_dir: str, max_age_days: int = DEFAULT_MAX_AGE_DAYS, now: Optional[float] = None) -> RetentionResult:
    """
    Supprime les fichiers de ``backup_dir`` dont l'âge (mtime) dépasse strictement
    ``max_age_days`` jours. Un répertoire absent compte pour zéro suppression.

    Un fichier impossible à supprimer n'interrompt pas le nettoyage : l'erreur
    est journalisée et renvoyée dans ``RetentionResult.errors``.
    """
    result = RetentionResult()
    if not os.path.isdir(backup_dir):
        logger.info("Backup directory missing, nothing to clean", backup_dir=backup_dir)
        return result

    now = time.time() if now is None else now
    max_age = max_age_days * SECONDS_PER_DAY

    with os.scandir(backup_dir) as entries:
        for entry in entries:
            if not entry.is_file(follow_symlinks=False):
                continue
            try:
                age = now - entry.stat(follow_symlinks=False).st_mtime
                if age > max_age:
                    os.unlink(entry.path)
                    result.deleted_count += 1
            except OSError as e:
                logger.warning("Cannot remove old backup file", path=entry.path, error=str(e))
                result.errors.append(f"Cannot delete {entry.name}: {e}")

    logger.info(
        "Cleaned old backup files",
        deleted_count=result.deleted_count,
        failed=len(result.errors),
        max_age_days=max_age_days,
    )
    return result


class RetentionManager:
    def __init__(self, backup_dir: str, max_age_days: int = DEFAULT_MAX_AGE_DAYS):
        self.backup_dir = backup_dir
        self.max_age_days = max_age_days

    def clean(self, max_age_days: Optional[int] = None, now: Optional[float] = None) -> RetentionResult:
        days = self.max_age_days if max_age_days is None else max_age_days
        return clean_old_backups(self.backup_dir, days, now=now)
