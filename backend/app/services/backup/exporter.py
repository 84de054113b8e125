# app/services/backup/exporter.py
import os
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.core.logging import get_logger
from app.schemas.backup import BackupFile, BackupRun, CollectionResult
from app.services.backup.collections import DEFAULT_COLLECTIONS, CollectionSpec
from app.services.backup.serializer import to_csv
from app.utils.formatting import backup_timestamp, format_long_datetime

logger = get_logger("backup.exporter")

SUMMARY_COLLECTION = "summary"


class BackupExporter:
    """Exporte chaque collection vers ``<collection>_<timestamp>.csv`` dans ``backup_dir``."""

    def __init__(
        self,
        engine: Engine,
        backup_dir: str,
        collections: Sequence[CollectionSpec] = DEFAULT_COLLECTIONS,
        tz_name: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.engine = engine
        self.backup_dir = os.path.abspath(backup_dir)
        self.collections = list(collections)
        self.tz_name = tz_name
        self.clock = clock

    def check_connectivity(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def ensure_backup_dir(self) -> str:
        os.makedirs(self.backup_dir, exist_ok=True)
        return self.backup_dir

    def export_collection(self, session: Session, spec: CollectionSpec) -> CollectionResult:
        try:
            documents = spec.fetch(session)
            csv_text = to_csv(documents, empty_message=spec.empty_message())
        except Exception as e:
            logger.error("Collection export failed", collection=spec.name, error=str(e), exc_info=True)
            # La session peut être dans un état invalide après une erreur SQL
            session.rollback()
            return CollectionResult(
                collection=spec.name,
                label=spec.label,
                csv_text=f"{spec.error_message(e)}\n",
                error=str(e),
            )
        return CollectionResult(
            collection=spec.name,
            label=spec.label,
            records=len(documents),
            csv_text=csv_text,
        )

    def export_all(self) -> BackupRun:
        started = self.clock()
        timestamp = backup_timestamp(started)
        logger.info("Starting database backup", timestamp=timestamp, backup_dir=self.backup_dir)

        try:
            self.check_connectivity()
        except Exception as e:
            logger.error("Database unreachable, backup aborted", error=str(e))
            return BackupRun(timestamp=timestamp, success=False, error=f"Database connection failed: {e}")

        try:
            self.ensure_backup_dir()
        except OSError as e:
            logger.error("Cannot create backup directory", backup_dir=self.backup_dir, error=str(e))
            return BackupRun(
                timestamp=timestamp,
                backup_dir=self.backup_dir,
                success=False,
                error=f"Cannot create backup directory {self.backup_dir}: {e}",
            )

        run = BackupRun(timestamp=timestamp, backup_dir=self.backup_dir)
        with Session(self.engine) as session:
            for spec in self.collections:
                run.results[spec.name] = self.export_collection(session, spec)

        for spec in self.collections:
            result = run.results[spec.name]
            try:
                run.files.append(self._write_file(f"{spec.name}_{timestamp}.csv", result.csv_text, spec.name))
            except OSError as e:
                result.error = result.error or f"Cannot write backup file: {e}"

        run.summary = self.build_summary(run, started)
        try:
            run.files.append(self._write_file(f"backup_summary_{timestamp}.txt", run.summary, SUMMARY_COLLECTION))
        except OSError as e:
            run.error = f"Cannot write backup summary: {e}"

        logger.info(
            "Database backup completed",
            timestamp=timestamp,
            files=len(run.files),
            failed_collections=run.failed_collections(),
        )
        return run

    def _write_file(self, name: str, content: str, collection: str) -> BackupFile:
        path = os.path.join(self.backup_dir, name)
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            logger.error("Cannot write backup file", path=path, error=str(e))
            raise
        return BackupFile(name=name, path=path, collection=collection, size=os.path.getsize(path))

    def build_summary(self, run: BackupRun, started: datetime) -> str:
        lines: List[str] = [
            "Database Backup Summary",
            "=======================",
            f"Backup Date: {format_long_datetime(started, self.tz_name)}",
            f"Timestamp: {run.timestamp}",
            "",
            "Collections Backed Up:",
        ]
        for spec in self.collections:
            result = run.results[spec.name]
            outcome = f"FAILED ({result.error})" if result.error else "OK"
            lines.append(f"- {spec.label.title()}: {result.records} records [{outcome}]")

        lines += ["", "Files Created:"]
        lines += [f"- {f.name} ({f.collection})" for f in run.files]

        failed = run.failed_collections()
        if failed:
            lines += ["", f"Collections with errors: {', '.join(failed)}"]

        lines += [
            "",
            f"Total Files: {len(run.files) + 1}",
            f"Backup Directory: {run.backup_dir}",
            "",
        ]
        return "\n".join(lines)
