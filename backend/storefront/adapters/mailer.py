import smtplib
import threading
import time
from email.message import EmailMessage
from typing import Dict, List, Optional


class MailerError(Exception):
    """Raised when a message could not be handed to the mail transport."""
    pass


class MockMailerAdapter:
    """
    In-memory mailer. Sent messages are kept in `outbox` so tests and local
    runs can inspect them; `fail=True` makes every send raise MailerError.
    """

    def __init__(self, delay_ms: int = 0, fail: bool = False):
        self.delay_seconds = delay_ms / 1000.0
        self.fail = fail
        self.outbox: List[Dict] = []
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> Dict:
        time.sleep(self.delay_seconds)
        if self.fail:
            raise MailerError(f"Simulated delivery failure to {to}")
        msg = {"to": to, "subject": subject, "text": text, "html": html}
        with self._lock:
            self.outbox.append(msg)
        return msg

    def health_check(self) -> bool:
        return not self.fail


class SmtpMailerAdapter:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> Dict:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"SMTP delivery to {to} failed: {e}") from e
        return {"to": to, "subject": subject}

    def health_check(self) -> bool:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                return smtp.noop()[0] == 250
        except (smtplib.SMTPException, OSError):
            return False


def build_mailer(settings):
    if settings.MAILER_BACKEND == "smtp":
        return SmtpMailerAdapter(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.MAIL_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )
    return MockMailerAdapter()
