import os

from sqlmodel import create_engine

from app.services.backup.exporter import BackupExporter
from app.services.backup.pipeline import run_backup_pipeline
from app.services.backup.retention import SECONDS_PER_DAY

from conftest import FIXED_NOW, FakeTransport, attachment_names, body_text


def old_file(backup_dir, name="users_old.csv", age_days=400):
    os.makedirs(backup_dir, exist_ok=True)
    path = os.path.join(backup_dir, name)
    with open(path, "w") as f:
        f.write("stale")
    mtime = FIXED_NOW.timestamp() - age_days * SECONDS_PER_DAY
    os.utime(path, (mtime, mtime))
    return path


def test_full_pipeline_exports_cleans_and_notifies(exporter, retention, notifier, transport, backup_dir, scenario):
    stale = old_file(backup_dir)

    result = run_backup_pipeline(exporter, retention, notifier)

    assert result.run.success
    assert result.deleted_count == 1
    assert not os.path.exists(stale)
    assert result.delivery.delivered
    assert len(attachment_names(transport.sent[0][0])) == 5


def test_failed_export_skips_cleanup_but_still_mails(tmp_path, retention, notifier, transport, backup_dir):
    stale = old_file(backup_dir)
    broken = BackupExporter(create_engine(f"sqlite:///{tmp_path}/none/db.sqlite"), backup_dir, clock=lambda: FIXED_NOW)

    result = run_backup_pipeline(broken, retention, notifier)

    assert not result.run.success
    assert result.deleted_count is None
    assert os.path.exists(stale)
    assert result.delivery.delivered
    assert transport.sent[0][0]["Subject"].startswith("Database Backup FAILED")


def test_flags_disable_cleanup_and_email(exporter, retention, notifier, transport, backup_dir, scenario):
    stale = old_file(backup_dir)

    result = run_backup_pipeline(exporter, retention, notifier, send_email=False, clean_old=False)

    assert result.run.success
    assert result.deleted_count is None
    assert result.delivery is None
    assert os.path.exists(stale)
    assert transport.sent == []


def test_exporter_crash_becomes_failed_run(retention, notifier, transport):
    class CrashingExporter:
        def export_all(self):
            raise RuntimeError("disk on fire")

    result = run_backup_pipeline(CrashingExporter(), retention, notifier)

    assert not result.run.success
    assert result.run.error == "disk on fire"
    assert result.delivery.delivered


def test_delivery_failure_keeps_run_successful(exporter, retention, scenario):
    from app.services.backup.notifier import BackupNotifier

    notifier = BackupNotifier(FakeTransport(error=ConnectionRefusedError("refused")),
                              "backup@example.com", ["ops@example.com"], clock=lambda: FIXED_NOW)

    result = run_backup_pipeline(exporter, retention, notifier)

    assert result.run.success
    assert not result.delivery.delivered
    assert result.delivery.error == "refused"


def test_cleanup_errors_reach_the_result_and_the_mail(exporter, retention, notifier, transport, backup_dir, scenario, monkeypatch):
    stale = old_file(backup_dir)
    real_unlink = os.unlink

    def unlink(path, *args, **kwargs):
        if path == stale:
            raise PermissionError(13, "Permission denied", path)
        return real_unlink(path, *args, **kwargs)

    monkeypatch.setattr(os, "unlink", unlink)

    result = run_backup_pipeline(exporter, retention, notifier)

    assert result.run.success
    assert result.deleted_count == 0
    assert len(result.cleanup_errors) == 1
    assert "Cannot delete users_old.csv" in result.cleanup_errors[0]
    assert "Cleanup errors:" in result.run.summary
    assert "Cannot delete users_old.csv" in body_text(transport.sent[0][0])


def test_cleanup_crash_is_reported(exporter, notifier, scenario):
    class BrokenRetention:
        def clean(self):
            raise RuntimeError("disk unmounted")

    result = run_backup_pipeline(exporter, BrokenRetention(), notifier)

    assert result.run.success
    assert result.deleted_count is None
    assert result.cleanup_errors == ["Backup cleanup failed: disk unmounted"]
