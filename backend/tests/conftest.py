"""
Fixtures partagées : base SQLite en mémoire, répertoire de sauvegarde
temporaire, transport e-mail factice et planificateur prêt à l'emploi.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone

# La configuration est lue à l'import de app.core.config
_TEST_ROOT = tempfile.mkdtemp(prefix="wm-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_ROOT}/test.db")
os.environ.setdefault("BACKUP_DIR", os.path.join(_TEST_ROOT, "backups"))
os.environ.setdefault("BACKUP_SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.db.models import ActivityLog, Invoice, Role, User, WorkOrder
from app.services.backup.exporter import BackupExporter
from app.services.backup.notifier import BackupNotifier
from app.services.backup.retention import RetentionManager
from app.services.backup.scheduler import BackupScheduler

FIXED_NOW = datetime(2026, 10, 18, 2, 30, tzinfo=timezone.utc)  # 08:30 à Dhaka


class FakeTransport:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def describe(self):
        return "fake-smtp:465"

    def send(self, message, sender, recipients):
        if self.error is not None:
            raise self.error
        self.sent.append((message, sender, list(recipients)))


def attachment_names(message):
    return [part.get_filename() for part in message.walk() if part.get_filename()]


def body_text(message):
    """Texte décodé des corps plain/html, pièces jointes exclues."""
    return "".join(
        part.get_payload(decode=True).decode(part.get_content_charset() or "utf-8")
        for part in message.walk()
        if part.get_content_maintype() == "text" and not part.get_filename()
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def backup_dir(tmp_path):
    return str(tmp_path / "backups")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier(transport):
    return BackupNotifier(transport, "backup@example.com", ["ops@example.com"], "Asia/Dhaka", clock=lambda: FIXED_NOW)


@pytest.fixture
def exporter(engine, backup_dir):
    return BackupExporter(engine, backup_dir, tz_name="Asia/Dhaka", clock=lambda: FIXED_NOW)


@pytest.fixture
def retention(backup_dir):
    return RetentionManager(backup_dir, max_age_days=30)


@pytest.fixture
def scheduler(exporter, retention, notifier):
    sleeps = []
    scheduler = BackupScheduler(
        exporter,
        retention,
        notifier,
        hour=6,
        minute=0,
        timezone_name="Asia/Dhaka",
        restart_delay=0.5,
        clock=lambda: FIXED_NOW,
        sleep=sleeps.append,
    )
    scheduler.sleeps = sleeps
    yield scheduler
    scheduler.shutdown()


def make_user(session, email, name, role=Role.staff):
    user = User(email=email, hashed_password="not-a-real-hash", name=name, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_work_order(session, number, created_by, notes=None, assigned_to=None):
    work_order = WorkOrder(
        work_order_number=number,
        details=f"Details for {number}",
        address="1 Main Street",
        work_type="repair",
        schedule_date=FIXED_NOW,
        due_date=FIXED_NOW + timedelta(days=3),
        client_name="Client, Inc.",
        company_name="Acme",
        notes=notes,
        assigned_staff_id=assigned_to.id if assigned_to else None,
        created_by_id=created_by.id,
    )
    session.add(work_order)
    session.commit()
    session.refresh(work_order)
    return work_order


@pytest.fixture
def scenario(session):
    """2 comptes, 3 ordres de travail (un sans notes), 0 facture, 0 journal."""
    admin = make_user(session, "admin@example.com", "Admin", Role.admin)
    staff = make_user(session, "staff@example.com", "Field Staff")
    orders = [
        make_work_order(session, "WO-1", admin, notes="Call before arriving", assigned_to=staff),
        make_work_order(session, "WO-2", admin, notes='Gate code "1234", side door'),
        make_work_order(session, "WO-3", admin),
    ]
    return {"admin": admin, "staff": staff, "work_orders": orders}


__all__ = ["ActivityLog", "Invoice", "FakeTransport", "attachment_names", "body_text", "make_user", "make_work_order", "FIXED_NOW"]
