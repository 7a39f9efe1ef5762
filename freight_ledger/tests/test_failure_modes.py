"""
Failure Injection Tests.

Validates resilience against carrier and storage failures.
"""

import httpx
import pytest

from freight_ledger.app.core.exceptions import CarrierUnavailableError
from freight_ledger.app.core.reliability import CircuitBreaker, CircuitOpenError
from freight_ledger.app.models.dlq import DLQStatus
from freight_ledger.app.services.carrier_client import CarrierClient
from freight_ledger.app.services.ledger_failures import list_failures, record_failure


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    # Threshold reached
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers(monkeypatch):
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # Pretend the reset timeout has elapsed
    resume_at = cb.last_failure_time + 31
    monkeypatch.setattr("freight_ledger.app.core.reliability.time.time", lambda: resume_at)
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return 1

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    await cb.call(ok_func)
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_carrier_client_opens_circuit():
    """Repeated carrier 5xx responses trip the breaker; later calls fail fast."""
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(500)

    breaker = CircuitBreaker(name="carrier-test", failure_threshold=2, reset_timeout=60)
    async with CarrierClient(
        base_url="https://carrier.test", transport=httpx.MockTransport(handler), breaker=breaker
    ) as carrier:
        for _ in range(3):
            with pytest.raises(CarrierUnavailableError):
                await carrier.fetch_order_status("FL-1")

    assert len(calls) == 2
    assert breaker.state == "OPEN"


@pytest.mark.asyncio
async def test_carrier_client_sends_credentials(monkeypatch):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json={"status": "Delivered"})

    monkeypatch.setattr("freight_ledger.app.services.carrier_client.settings.carrier_api_id", "portal")
    monkeypatch.setattr("freight_ledger.app.services.carrier_client.settings.carrier_api_key", "s3cret")
    async with CarrierClient(
        base_url="https://carrier.test", transport=httpx.MockTransport(handler), breaker=CircuitBreaker()
    ) as carrier:
        assert await carrier.fetch_order_status("FL-1") == "Delivered"

    assert seen["x-api-id"] == "portal"
    assert seen["x-api-key"] == "s3cret"


@pytest.mark.asyncio
async def test_dlq_capture(db_session):
    """Test that a failed ledger task is captured in DLQ."""
    item = await record_failure(
        db_session,
        task_name="order_refund",
        error_message="connection reset",
        payload={"order_id": 500, "old_status": "pending", "new_status": "cancelled"},
    )

    assert item.id is not None
    assert item.status == DLQStatus.FAILED
    assert item.retry_count == 0

    failed = await list_failures(db_session, status=DLQStatus.FAILED)
    assert [f.id for f in failed] == [item.id]
    assert await list_failures(db_session, status=DLQStatus.PROCESSED) == []
