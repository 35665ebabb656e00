"""
SMTP Email Sender
=================

Sends notification emails over SMTP with aiosmtplib, guarded by:
- Circuit breaker to prevent hammering an unavailable mail server
- Exponential backoff retry
- Timeout handling

Delivery problems are logged and reported as ``False``; they never reach
the caller.
"""

import asyncio
import time
from email.message import EmailMessage as MIMEMessage
from typing import Any, Awaitable, Callable, Optional

import aiosmtplib

from src.config import settings
from src.notifications.application import IEmailSender
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


Transport = Callable[..., Awaitable[Any]]


class SMTPEmailSender(IEmailSender):
    """
    SMTP email client with circuit breaker and retry logic.

    ``transport`` defaults to ``aiosmtplib.send`` and receives the built
    message plus the connection keyword arguments.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[Transport] = None
    ):
        self.host = host if host is not None else settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.sender = sender or settings.mail_from
        self.timeout = timeout or settings.smtp_timeout_seconds
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._transport = transport or aiosmtplib.send

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _build_message(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[tuple[str, bytes]] = None
    ) -> MIMEMessage:
        message = MIMEMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        if attachment is not None:
            filename, content = attachment
            message.add_attachment(
                content,
                maintype="application",
                subtype="octet-stream",
                filename=filename
            )
        return message

    async def send(self, to: str, subject: str, body: str) -> bool:
        return await self._deliver(to, subject, body)

    async def send_with_attachment(
        self,
        to: str,
        subject: str,
        body: str,
        filename: str,
        content: bytes
    ) -> bool:
        return await self._deliver(to, subject, body, attachment=(filename, content))

    async def _deliver(
        self,
        to: str,
        subject: str,
        body: str,
        attachment: Optional[tuple[str, bytes]] = None
    ) -> bool:
        """
        Send one email.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.host:
            logger.debug("SMTP host not configured, skipping email", extra={"recipient": to})
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping email",
                extra={"recipient": to, "subject": subject}
            )
            return False

        try:
            message = self._build_message(to, subject, body, attachment)
        except Exception as e:
            logger.error(f"Failed to build email: {e}", extra={"recipient": to})
            return False

        for attempt in range(self.max_retries):
            try:
                await self._transport(
                    message,
                    hostname=self.host,
                    port=self.port,
                    username=self.username or None,
                    password=self.password or None,
                    start_tls=self.use_tls,
                    timeout=self.timeout
                )
                self._circuit_breaker.record_success()
                logger.info(
                    "Email sent",
                    extra={"recipient": to, "subject": subject}
                )
                return True

            except Exception as e:
                logger.error(
                    "Email delivery failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "recipient": to
                    }
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_base_delay * 2 ** attempt)

        self._circuit_breaker.record_failure()
        return False
