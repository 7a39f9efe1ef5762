"""
Carrier API client.

Thin httpx wrapper for the carrier calls the order lifecycle needs:
cancelling an order and reading its current status. Calls go through
the carrier circuit breaker.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from freight_ledger.app.core.config import settings
from freight_ledger.app.core.exceptions import CarrierUnavailableError
from freight_ledger.app.core.reliability import CircuitBreaker, CircuitOpenError, carrier_circuit_breaker

logger = logging.getLogger(__name__)


class CarrierClient:
    """
    Carrier API client.

    Usage:
        async with CarrierClient() as carrier:
            await carrier.cancel_order("FL-1024")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        breaker: Optional[CircuitBreaker] = None,
        timeout: Optional[float] = None
    ):
        headers = {"Accept": "application/json"}
        if settings.carrier_api_id:
            headers["X-Api-Id"] = settings.carrier_api_id
        if settings.carrier_api_key:
            headers["X-Api-Key"] = settings.carrier_api_key

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.carrier_api_base_url,
            headers=headers,
            timeout=timeout or settings.carrier_timeout_seconds,
            transport=transport,
        )
        self._breaker = breaker or carrier_circuit_breaker

    async def __aenter__(self) -> "CarrierClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        async def send() -> httpx.Response:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response

        try:
            response = await self._breaker.call(send)
        except CircuitOpenError as exc:
            raise CarrierUnavailableError(str(exc))
        except httpx.HTTPStatusError as exc:
            logger.warning("Carrier %s %s returned %s", method, path, exc.response.status_code)
            raise CarrierUnavailableError(
                "Carrier rejected the request",
                details={"status_code": exc.response.status_code}
            )
        except httpx.HTTPError as exc:
            logger.warning("Carrier %s %s failed: %s", method, path, exc)
            raise CarrierUnavailableError()

        if not response.content:
            return {}
        return response.json()

    async def cancel_order(self, order_number: str) -> Dict[str, Any]:
        """Ask the carrier to cancel an order. Raises CarrierUnavailableError on failure."""
        body = await self._request("POST", f"/orders/{order_number}/cancel")
        if body.get("success") is False:
            raise CarrierUnavailableError(
                body.get("message") or "Carrier refused the cancellation",
                details={"order_number": order_number}
            )
        return body

    async def fetch_order_status(self, order_number: str) -> Optional[str]:
        """Return the carrier's raw status string for an order, if it reports one."""
        body = await self._request("GET", f"/orders/{order_number}")
        data = body.get("data") if isinstance(body.get("data"), dict) else body
        return data.get("orderStatus") or data.get("status")


async def get_carrier_client():
    """FastAPI dependency yielding a carrier client for the request."""
    async with CarrierClient() as client:
        yield client
