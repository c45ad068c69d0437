import asyncio
import functools
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from otpboard import config
from otpboard.errors import DeliveryError

logger = logging.getLogger(__name__)


def build_message(sender: str | None, to_email: str, subject: str, body: str) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg['Subject'] = subject
    msg['From'] = sender or ""
    msg['To'] = to_email
    msg.attach(MIMEText(body, 'plain'))
    return msg


class Mailer:
    """
    Process-wide mail handle.

    `send` runs the blocking transport on a worker thread and awaits it, so a
    failed delivery reaches the caller as DeliveryError. Sends keep running if
    the awaiting request goes away; `aclose` waits for them on shutdown.
    """

    def __init__(self, sender: str | None = None):
        self.sender = sender
        self._in_flight: set[asyncio.Task] = set()
        self._closing = False

    def _deliver(self, msg: MIMEMultipart):
        raise NotImplementedError

    async def send(self, to_email: str, subject: str, body: str):
        if self._closing:
            raise DeliveryError("Mail service is shutting down")

        msg = build_message(self.sender, to_email, subject, body)
        task = asyncio.ensure_future(asyncio.to_thread(self._deliver, msg))
        self._in_flight.add(task)
        task.add_done_callback(functools.partial(self._finished, to_email))

        try:
            await asyncio.shield(task)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError() from e

    def _finished(self, to_email: str, task: asyncio.Task):
        # Also runs for sends whose request was abandoned.
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to send email to {to_email}. Reason: {error!r}")

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def aclose(self, timeout: float = config.MAIL_DRAIN_TIMEOUT_SECONDS):
        self._closing = True
        if not self._in_flight:
            return
        logger.info(f"Waiting for {len(self._in_flight)} outgoing emails")
        _, pending = await asyncio.wait(set(self._in_flight), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} emails still sending after {timeout}s, giving up")


class SmtpMailer(Mailer):
    def __init__(self, server: str, port: int, user: str | None, password: str | None,
                 sender: str | None = None, timeout: float = 30):
        super().__init__(sender or user)
        self.server = server
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def _deliver(self, msg: MIMEMultipart):
        # timeout keeps a dead SMTP server from pinning the worker thread
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            if self.user:
                server.login(self.user, self.password or "")
            server.send_message(msg)
        logger.info(f"Email sent successfully to {msg['To']}")


class ConsoleMailer(Mailer):
    """Logs messages instead of sending them. For local development."""

    def _deliver(self, msg: MIMEMultipart):
        body = msg.get_payload()[0].get_payload(decode=True).decode("utf-8", "replace")
        logger.info(f"[console mail] to={msg['To']} subject={msg['Subject']!r}\n{body}")


def build_mailer() -> Mailer:
    if config.EMAIL_BACKEND == "console":
        return ConsoleMailer(config.SENDER_EMAIL)
    if config.EMAIL_BACKEND != "smtp":
        raise ValueError(f"Unknown EMAIL_BACKEND: {config.EMAIL_BACKEND}")
    return SmtpMailer(
        config.SMTP_SERVER,
        config.SMTP_PORT,
        config.SMTP_USER,
        config.SMTP_PASS,
        sender=config.SENDER_EMAIL,
        timeout=config.SMTP_TIMEOUT_SECONDS,
    )
