# scripts/run_backup.py
"""
Lance une sauvegarde complète (export → nettoyage → e-mail) hors planification,
ou teste seulement la configuration SMTP avec ``--probe``.

    python scripts/run_backup.py [--no-email] [--no-clean] [--probe]
"""
import argparse
import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))  # ajoute backend/ au PYTHONPATH

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.base import engine, init_db
from app.services.backup.scheduler import BackupScheduler


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the database backup pipeline once")
    parser.add_argument("--no-email", action="store_true", help="do not send the backup email")
    parser.add_argument("--no-clean", action="store_true", help="do not delete old backup files")
    parser.add_argument("--probe", action="store_true", help="only send an SMTP configuration test email")
    args = parser.parse_args(argv)

    setup_logging()
    init_db()
    scheduler = BackupScheduler.from_settings(settings, engine)

    if args.probe:
        delivery = scheduler.notifier.send_probe()
        print(f"Probe delivered: {delivery.delivered}" + (f" ({delivery.error})" if delivery.error else ""))
        return 0 if delivery.delivered else 1

    result = scheduler.trigger_manual(send_email=not args.no_email, clean_old=not args.no_clean)
    run = result.run
    if not run.success:
        print(f"Backup failed: {run.error}")
        return 1

    print(run.summary)
    if result.deleted_count is not None:
        print(f"Old files deleted: {result.deleted_count}")
    for error in result.cleanup_errors:
        print(f"Cleanup error: {error}")
    if result.delivery is not None:
        print(f"Email delivered: {result.delivery.delivered}" + (f" ({result.delivery.error})" if result.delivery.error else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
