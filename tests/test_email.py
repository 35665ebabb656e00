"""Tests for SMTP delivery, retries and the circuit breaker."""
import pytest

from src.notifications.infrastructure.email import CircuitBreaker, CircuitState, SMTPEmailSender


class FakeTransport:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = []

    async def __call__(self, message, **kwargs):
        self.calls.append((message, kwargs))
        if len(self.calls) <= self.failures:
            raise ConnectionError("smtp unavailable")
        return {}, "OK"


def make_sender(transport, **kwargs):
    options = dict(
        host="smtp.test", port=2525, username="", password="", use_tls=False,
        sender="tracker@test", timeout=5, retry_base_delay=0, transport=transport
    )
    options.update(kwargs)
    return SMTPEmailSender(**options)


@pytest.mark.asyncio
class TestSMTPEmailSender:
    async def test_send(self):
        transport = FakeTransport()
        sender = make_sender(transport)

        assert await sender.send("dev@x.com", "Hello", "Body text") is True

        message, kwargs = transport.calls[0]
        assert message["To"] == "dev@x.com"
        assert message["From"] == "tracker@test"
        assert message["Subject"] == "Hello"
        assert "Body text" in message.get_content()
        assert kwargs["hostname"] == "smtp.test"
        assert kwargs["port"] == 2525
        assert kwargs["username"] is None
        assert kwargs["start_tls"] is False

    async def test_no_host_skips_delivery(self):
        transport = FakeTransport()
        sender = make_sender(transport, host="")
        assert await sender.send("dev@x.com", "Hello", "Body") is False
        assert transport.calls == []

    async def test_retries_then_succeeds(self):
        transport = FakeTransport(failures=2)
        sender = make_sender(transport)
        assert await sender.send("dev@x.com", "Hello", "Body") is True
        assert len(transport.calls) == 3
        assert sender.circuit_breaker.state == CircuitState.CLOSED

    async def test_exhausted_retries_return_false(self):
        transport = FakeTransport(failures=10)
        sender = make_sender(transport, max_retries=2)
        assert await sender.send("dev@x.com", "Hello", "Body") is False
        assert len(transport.calls) == 2

    async def test_breaker_opens_after_repeated_failures(self):
        transport = FakeTransport(failures=100)
        sender = make_sender(transport, max_retries=1)

        for _ in range(5):
            assert await sender.send("dev@x.com", "Hello", "Body") is False
        assert sender.circuit_breaker.state == CircuitState.OPEN

        assert await sender.send("dev@x.com", "Hello", "Body") is False
        assert len(transport.calls) == 5

    async def test_attachment(self):
        transport = FakeTransport()
        sender = make_sender(transport)

        assert await sender.send_with_attachment(
            "dev@x.com", "Report", "See attached", "report.csv", b"a,b\n1,2\n"
        ) is True

        message, _ = transport.calls[0]
        attachments = list(message.iter_attachments())
        assert len(attachments) == 1
        assert attachments[0].get_filename() == "report.csv"
        assert attachments[0].get_content() == b"a,b\n1,2\n"


class TestCircuitBreaker:
    def test_half_open_after_recovery_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_failure_while_half_open_reopens(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        breaker._state = CircuitState.HALF_OPEN
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
