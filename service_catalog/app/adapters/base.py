"""
Common plumbing for backend service clients.
"""

import time
from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreakerOpenException, get_circuit_breaker
from shared.errors import BackendError
from shared.logging import get_logger, get_request_id
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception


class BackendClient:
    """HTTP client for one backend service.

    Transport failures are retried; any non-success response, exhausted
    retries or an open circuit surface as :class:`BackendError`.
    """

    service_name = "backend"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.metrics = metrics
        self._transport = transport
        self.logger = get_logger(f"gateway.{self.service_name}_client")
        self.circuit_breaker = get_circuit_breaker(
            self.service_name,
            failure_threshold=3,
            recovery_timeout=30.0
        )
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)

    @retry_on_exception((httpx.TransportError,))
    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]],
        json_body: Optional[Any],
    ) -> httpx.Response:
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers["x-request-id"] = request_id

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            return await client.request(method, path, params=params, json=json_body, headers=headers)

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        not_found_ok: bool = False,
    ) -> Any:
        """Issue a request and decode its JSON body.

        With ``not_found_ok`` a 404 yields ``None`` instead of an error.
        """

        async def _call():
            response = await self._send(method, path, params, json_body)

            # Only server-side failures count against the circuit
            if response.status_code >= 500:
                self.logger.error(
                    "Backend request failed",
                    operation=operation,
                    path=path,
                    status_code=response.status_code,
                    response=response.text
                )
                raise BackendError(
                    service=self.service_name,
                    message=f"Unexpected status {response.status_code}",
                    details={"status_code": response.status_code, "body": _error_body(response)}
                )
            return response

        start = time.perf_counter()
        result = "ok"
        try:
            response = await self.circuit_breaker.call(_call)

            if response.status_code == 404 and not_found_ok:
                self.logger.debug("Backend entity not found", operation=operation, path=path)
                return None

            if response.status_code >= 400:
                self.logger.warning(
                    "Backend rejected request",
                    operation=operation,
                    path=path,
                    status_code=response.status_code,
                    response=response.text
                )
                raise BackendError.rejected(self.service_name, response.status_code, _error_body(response))

            if not response.content:
                return None
            return response.json()
        except BackendError:
            result = "error"
            raise
        except RetryError as exc:
            result = "error"
            raise BackendError(
                service=self.service_name,
                message=str(exc.last_exception) or type(exc.last_exception).__name__,
                details={"attempts": exc.attempts}
            ) from exc
        except CircuitBreakerOpenException as exc:
            result = "rejected"
            raise BackendError(service=self.service_name, message=str(exc)) from exc
        finally:
            if self.metrics:
                self.metrics.record_backend_call(
                    self.service_name, operation, result, time.perf_counter() - start
                )


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
