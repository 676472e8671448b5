"""
TamperWatch - Email alert sink.

Collects the events of one scan cycle and sends them as a single plain-text
email when the cycle is flushed. Uses smtplib + EmailMessage over STARTTLS,
with a bounded timeout so a dead SMTP server cannot stall the scan loop.
Credentials come from the validated config (originally environment variables).
"""

import logging
import smtplib
import socket
from email.message import EmailMessage
from email.utils import formatdate
from typing import Optional

from tamperwatch.core.alerts import AlertSink
from tamperwatch.core.models import ChangeEvent, EventType

logger = logging.getLogger(__name__)

DEFAULT_PORT = 587
DEFAULT_TIMEOUT = 30.0


def build_body(events: list[ChangeEvent], hostname: str) -> str:
    counts = {t: sum(1 for e in events if e.event_type is t) for t in EventType}
    lines = [
        f"[TamperWatch ALERT] {len(events)} file change(s) on {hostname}",
        "================================================",
        f"New:       {counts[EventType.NEW]}",
        f"Modified:  {counts[EventType.MODIFIED]}",
        f"Deleted:   {counts[EventType.DELETED]}",
        "================================================",
        "",
    ]
    for event in events:
        lines.append(f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')} {event.describe()}")
    return "\n".join(lines) + "\n"


class EmailAlertSink(AlertSink):
    """Batches events per cycle; failures are logged and the batch is dropped."""

    def __init__(
        self,
        *,
        host: str,
        to_addr: str,
        port: int = DEFAULT_PORT,
        user: Optional[str] = None,
        password: Optional[str] = None,
        from_addr: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.to_addr = to_addr
        self.user = user
        self._password = password
        self.from_addr = from_addr or user or to_addr
        self.timeout = timeout
        self._pending: list[ChangeEvent] = []

    def notify(self, event: ChangeEvent) -> None:
        self._pending.append(event)

    def flush(self) -> None:
        if not self._pending:
            return
        events, self._pending = self._pending, []
        self.send(events)

    def close(self) -> None:
        self.flush()

    def build_message(self, events: list[ChangeEvent]) -> EmailMessage:
        hostname = socket.gethostname()
        msg = EmailMessage()
        msg["Subject"] = f"[TamperWatch ALERT] {len(events)} file change(s) detected on {hostname}"
        msg["From"] = self.from_addr
        msg["To"] = self.to_addr
        msg["Date"] = formatdate(usegmt=True)
        msg.set_content(build_body(events, hostname))
        return msg

    def send(self, events: list[ChangeEvent]) -> bool:
        """Send one email for events. Returns True on success, never raises."""
        msg = self.build_message(events)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user and self._password:
                    server.login(self.user, self._password)
                server.send_message(msg)
            logger.info("[EMAIL] Alert email sent to %s (%d events)", self.to_addr, len(events))
            return True
        except smtplib.SMTPException as e:
            logger.warning("[EMAIL] SMTP error sending alert: %s", e)
            return False
        except OSError as e:
            logger.warning("[EMAIL] Failed to reach %s:%d: %s", self.host, self.port, e)
            return False
