import smtplib

import pytest

from app.schemas.backup import BackupRun
from app.services.backup.errors import TransportNotConfiguredError
from app.services.backup.notifier import BackupNotifier, SmtpTransport

from conftest import FIXED_NOW, FakeTransport, attachment_names, body_text


def test_success_mail_attaches_every_backup_file(exporter, notifier, transport, scenario):
    run = exporter.export_all()

    delivery = notifier.notify(run)

    assert delivery.delivered
    message, sender, recipients = transport.sent[0]
    assert sender == "backup@example.com"
    assert recipients == ["ops@example.com"]
    assert message["Subject"] == "Database Backup - Sunday, October 18, 2026 08:30:00"
    assert sorted(attachment_names(message)) == sorted(f.name for f in run.files)
    csv_parts = [p for p in message.walk() if p.get_content_type() == "text/csv"]
    assert len(csv_parts) == 4
    assert "- Users: 2 records [OK]" in body_text(message)


def test_attachments_carry_the_file_bytes(exporter, notifier, transport, scenario):
    run = exporter.export_all()
    users = next(f for f in run.files if f.collection == "users")

    notifier.notify(run)

    part = next(p for p in transport.sent[0][0].walk() if p.get_filename() == users.name)
    with open(users.path, "rb") as f:
        assert part.get_payload(decode=True) == f.read()


def test_failure_mail_has_no_attachments(notifier, transport):
    run = BackupRun(timestamp="2026-10-18T02-30-00-000Z", success=False, error="Database connection failed: boom")

    delivery = notifier.notify(run)

    assert delivery.delivered
    message = transport.sent[0][0]
    assert message["Subject"].startswith("Database Backup FAILED - ")
    assert attachment_names(message) == []
    assert "Database connection failed: boom" in body_text(message)


def test_transport_error_is_reported_not_raised(exporter, scenario):
    notifier = BackupNotifier(FakeTransport(error=smtplib.SMTPAuthenticationError(535, b"bad credentials")),
                              "backup@example.com", ["ops@example.com"], "Asia/Dhaka", clock=lambda: FIXED_NOW)
    run = exporter.export_all()

    delivery = notifier.notify(run)

    assert not delivery.delivered
    assert "bad credentials" in delivery.error
    assert run.success


def test_no_recipients_means_no_delivery(transport):
    notifier = BackupNotifier(transport, "backup@example.com", [], "Asia/Dhaka")
    delivery = notifier.send_probe()
    assert not delivery.delivered
    assert transport.sent == []


def test_transport_check_mail(notifier, transport):
    delivery = notifier.send_probe()
    assert delivery.delivered
    message = transport.sent[0][0]
    assert message["Subject"] == "Backup Email Configuration Test"
    assert "fake-smtp:465" in body_text(message)


def test_unreadable_backup_file_still_notifies(exporter, notifier, transport, scenario):
    run = exporter.export_all()
    run.files[0].path = "/nonexistent/backup.csv"

    delivery = notifier.notify(run)

    assert delivery.delivered
    message = transport.sent[0][0]
    assert attachment_names(message) == []
    assert "could not be attached" in body_text(message)


def test_non_utf8_backup_file_is_attached_as_is(exporter, notifier, transport, scenario):
    run = exporter.export_all()
    target = run.files[0]
    with open(target.path, "wb") as f:
        f.write(b"\xff\xfe bad")

    delivery = notifier.notify(run)

    assert delivery.delivered
    part = next(p for p in transport.sent[0][0].walk() if p.get_filename() == target.name)
    assert part.get_payload(decode=True) == b"\xff\xfe bad"


def test_smtp_transport_without_host_is_not_configured():
    notifier = BackupNotifier(SmtpTransport(host=None), "backup@example.com", ["ops@example.com"])
    delivery = notifier.send_probe()
    assert not delivery.delivered
    assert delivery.error == "SMTP host is not configured"


def test_smtp_transport_uses_ssl_and_login(monkeypatch):
    calls = []

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            calls.append(("connect", host, port, timeout))

        def login(self, username, password):
            calls.append(("login", username, password))

        def sendmail(self, sender, recipients, payload):
            calls.append(("sendmail", sender, recipients))

        def quit(self):
            calls.append(("quit",))

    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    transport = SmtpTransport("smtp.example.com", 465, username="bot", password="secret", timeout=5)
    message = BackupNotifier(transport, "bot@example.com", ["ops@example.com"])._compose("s", "<p>h</p>", "t")

    transport.send(message, "bot@example.com", ["ops@example.com"])

    assert calls == [
        ("connect", "smtp.example.com", 465, 5),
        ("login", "bot", "secret"),
        ("sendmail", "bot@example.com", ["ops@example.com"]),
        ("quit",),
    ]


def test_empty_host_raises_not_configured():
    with pytest.raises(TransportNotConfiguredError, match="not configured"):
        SmtpTransport(host="").send(None, "a@example.com", ["b@example.com"])
