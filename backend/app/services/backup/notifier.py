# app/services/backup/notifier.py
import html
import os
import smtplib
from datetime import datetime, timezone
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import Callable, List, Optional, Sequence

from app.core.logging import get_logger
from app.schemas.backup import BackupRun, DeliveryResult
from app.services.backup.errors import TransportNotConfiguredError
from app.utils.formatting import format_long_datetime

logger = get_logger("backup.notifier")

APP_NAME = "Work Management System"


class SmtpTransport:
    """Envoi SMTP (SSL implicite ou STARTTLS) avec authentification optionnelle."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 465,
        use_ssl: bool = True,
        use_tls: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SmtpTransport":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            use_ssl=settings.SMTP_USE_SSL,
            use_tls=settings.SMTP_USE_TLS,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    def describe(self) -> str:
        return f"{self.host}:{self.port}" + (" (SSL)" if self.use_ssl else "")

    def send(self, message: MIMEMultipart, sender: str, recipients: Sequence[str]) -> None:
        if not self.host:
            raise TransportNotConfiguredError("SMTP host is not configured")
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_tls and not self.use_ssl:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(sender, list(recipients), message.as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                server.close()


def _content_type(filename: str) -> str:
    return "text/csv" if filename.endswith(".csv") else "text/plain"


class BackupNotifier:
    def __init__(
        self,
        transport,
        sender: Optional[str],
        recipients: Sequence[str],
        tz_name: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.transport = transport
        self.sender = sender
        self.recipients: List[str] = list(recipients)
        self.tz_name = tz_name
        self.clock = clock

    def notify(self, run: BackupRun) -> DeliveryResult:
        try:
            message = self.build_message(run)
        except OSError as e:
            # Fichier de sauvegarde illisible : on prévient quand même, sans pièces jointes
            logger.error("Cannot attach backup files", timestamp=run.timestamp, error=str(e))
            message = self._compose(
                subject=self._subject(run),
                html_body=self._failure_html(run, f"Backup files could not be attached: {e}"),
                text_body=f"Backup {run.timestamp}: files could not be attached ({e}).",
            )
        return self._deliver(message, kind="backup", timestamp=run.timestamp)

    def send_probe(self) -> DeliveryResult:
        now = format_long_datetime(self.clock(), self.tz_name)
        server = self.transport.describe() if hasattr(self.transport, "describe") else "configured transport"
        message = self._compose(
            subject="Backup Email Configuration Test",
            html_body=(
                "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;\">"
                "<h2 style=\"color: #059669;\">Backup Email Test</h2>"
                "<p>This is a test email to verify the backup email configuration is working correctly.</p>"
                f"<p><strong>Time:</strong> {html.escape(now)}</p>"
                f"<p><strong>From:</strong> {html.escape(self.sender or '')}</p>"
                f"<p><strong>Server:</strong> {html.escape(server)}</p>"
                "</div>"
            ),
            text_body=f"Backup email test.\nTime: {now}\nServer: {server}\n",
        )
        return self._deliver(message, kind="probe")

    def build_message(self, run: BackupRun) -> MIMEMultipart:
        if not run.success:
            return self._compose(
                subject=self._subject(run),
                html_body=self._failure_html(run, run.error or "Unknown error occurred"),
                text_body=f"Database backup FAILED.\nTimestamp: {run.timestamp}\nError: {run.error or 'Unknown error occurred'}\n",
            )

        message = self._compose(
            subject=self._subject(run),
            html_body=self._success_html(run),
            text_body=run.summary or f"Database backup {run.timestamp} completed.",
        )
        for backup_file in run.files:
            # Octets bruts, sans décodage
            with open(backup_file.path, "rb") as f:
                part = MIMEBase(*_content_type(backup_file.name).split("/", 1), charset="utf-8")
                part.set_payload(f.read())
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=os.path.basename(backup_file.name))
            message.attach(part)
        return message

    def _deliver(self, message: MIMEMultipart, kind: str, **context) -> DeliveryResult:
        if not self.recipients:
            logger.warning("No backup email recipients configured", kind=kind, **context)
            return DeliveryResult(delivered=False, error="No backup email recipients configured")
        try:
            self.transport.send(message, self.sender, self.recipients)
        except Exception as e:
            logger.error("Backup email delivery failed", kind=kind, error=str(e), **context)
            return DeliveryResult(delivered=False, error=str(e))
        logger.info("Backup email sent", kind=kind, recipients=self.recipients, **context)
        return DeliveryResult(delivered=True, message="Email sent successfully")

    def _compose(self, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        message = MIMEMultipart("mixed")
        message["Subject"] = subject
        message["From"] = self.sender or ""
        message["To"] = ", ".join(self.recipients)
        message["Date"] = formatdate(localtime=False)
        alt = MIMEMultipart("alternative")
        alt.attach(MIMEText(text_body, "plain", "utf-8"))
        alt.attach(MIMEText(html_body, "html", "utf-8"))
        message.attach(alt)
        return message

    def _subject(self, run: BackupRun) -> str:
        day = format_long_datetime(self.clock(), self.tz_name).split(" (")[0]
        status = "Database Backup" if run.success else "Database Backup FAILED"
        return f"{status} - {day}"

    def _success_html(self, run: BackupRun) -> str:
        files = "".join(
            f"<li>{html.escape(f.name)} <span style=\"color: #78716c; font-size: 12px;\">({html.escape(f.collection)})</span></li>"
            for f in run.files
        ) or "<li>No files attached</li>"
        return (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            f"<h1 style=\"color: #1f2937;\">Database Backup</h1><p style=\"color: #6b7280;\">{APP_NAME}</p>"
            f"<p><strong>Status:</strong> <span style=\"color: #059669;\">SUCCESS</span></p>"
            f"<p><strong>Files Created:</strong> {len(run.files)}</p>"
            f"<pre style=\"font-family: 'Courier New', monospace;\">{html.escape(run.summary or 'No summary available')}</pre>"
            f"<h3>Attached Files</h3><ul>{files}</ul>"
            "</div>"
        )

    def _failure_html(self, run: BackupRun, error: str) -> str:
        return (
            "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
            f"<h1 style=\"color: #1f2937;\">Database Backup</h1><p style=\"color: #6b7280;\">{APP_NAME}</p>"
            "<p><strong>Status:</strong> <span style=\"color: #dc2626;\">FAILED</span></p>"
            f"<p><strong>Timestamp:</strong> {html.escape(run.timestamp)}</p>"
            f"<p style=\"color: #991b1b;\">Error: {html.escape(error)}</p>"
            "</div>"
        )
