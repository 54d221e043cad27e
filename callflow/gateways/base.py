"""Base HTTP gateway for external services.

Each gateway owns one httpx.AsyncClient and no per-call state, so it can be
used concurrently by any number of calls. Transport failures are mapped to
the GatewayError family with the service and operation attached.
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from callflow.exceptions import (
    GatewayConnectionError,
    GatewayError,
    GatewayResponseError,
    GatewayTimeoutError,
    MissingConfigError,
)
from callflow.gateways.credentials import CredentialStore
from callflow.observability.logging import get_logger
from callflow.observability.metrics import record_gateway_error, record_gateway_latency
from callflow.utils.async_timeout import AsyncTimeoutError, with_timeout

logger = get_logger(__name__)


class ServiceGateway:
    """JSON-over-HTTP client for one external service.

    Subclasses set `service` (used in errors and metrics) and `config_key`
    (the settings field holding the base URL).
    """

    service: str = "service"
    config_key: str = "service_url"

    def __init__(
        self,
        base_url: str | None,
        credentials: CredentialStore,
        timeout_s: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise MissingConfigError(
                self.config_key, f"base URL for the {self.service} service"
            )
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._timeout_s = timeout_s
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        call_id: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and map failures to typed errors.

        Raises:
            GatewayTimeoutError: Request exceeded timeout_s
            GatewayConnectionError: Service unreachable
            GatewayResponseError: Non-2xx status
        """
        started = time.perf_counter()
        try:
            response = await with_timeout(
                self._client.request(
                    method,
                    path,
                    json=json,
                    headers=self._credentials.auth_headers(),
                ),
                timeout_s=self._timeout_s,
                operation=f"{self.service}.{operation}",
            )
        except (httpx.TimeoutException, AsyncTimeoutError):
            record_gateway_error(self.service, operation, "timeout")
            raise GatewayTimeoutError(self.service, operation, self._timeout_s, call_id)
        except httpx.HTTPError as e:
            record_gateway_error(self.service, operation, "connection")
            raise GatewayConnectionError(self.service, operation, str(e), call_id)
        finally:
            record_gateway_latency(self.service, operation, time.perf_counter() - started)

        if response.is_error:
            record_gateway_error(self.service, operation, "status")
            logger.warning(
                "gateway_error_status",
                service=self.service,
                operation=operation,
                call_id=call_id,
                status_code=response.status_code,
            )
            raise GatewayResponseError(
                self.service, operation, response.status_code, call_id
            )
        return response

    async def _request_json(
        self,
        method: str,
        path: str,
        operation: str,
        call_id: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and decode a JSON object body."""
        response = await self._request(method, path, operation, call_id, json)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            record_gateway_error(self.service, operation, "decode")
            raise GatewayError(self.service, operation, "invalid JSON body", call_id)
        if not isinstance(body, dict):
            record_gateway_error(self.service, operation, "decode")
            raise GatewayError(self.service, operation, "expected a JSON object", call_id)
        return body
