"""Timeout-aware asynchronous HTTP client.

This module wraps the ``httpx`` asynchronous client used for every call to
the Met collection API.  Each call first takes a slot from the shared
``RateLimiter``, is then raced against a per-call timeout, and finally has
its JSON body validated against a pydantic model.  Nothing is raised to the
caller: the result is always a ``CallOutcome`` whose failures are classified
into the taxonomy defined in ``met_explorer.core.outcomes``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

import httpx
from pydantic import BaseModel, ValidationError

from met_explorer.core.outcomes import (
    CallOutcome,
    classify_exception,
    classify_status,
    shape_failure,
)
from met_explorer.core.rate_limiter import RateLimiter, get_rate_limiter

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class OutboundCall:
    """A single outbound request."""

    url: str
    params: Optional[Dict[str, Any]] = None
    body: Optional[Any] = None
    method: str = "GET"
    timeout: Optional[float] = None


class TimeoutAwareClient:
    """Issues rate-limited, time-bounded calls and classifies their failures."""

    DEFAULT_USER_AGENT = "met-explorer/0.1 (+https://metmuseum.github.io/)"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Initialize the client.

        Parameters
        ----------
        timeout : float
            Default per-call timeout in seconds.
        rate_limiter : RateLimiter, optional
            Limiter to acquire slots from.  Defaults to the process-wide
            limiter returned by ``get_rate_limiter()`` at call time.
        transport : httpx.AsyncBaseTransport, optional
            Custom transport (``httpx.MockTransport`` in tests).
        user_agent : str, optional
            User-Agent header value.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        self._rate_limiter = rate_limiter
        self._transport = transport
        self._user_agent = user_agent or self.DEFAULT_USER_AGENT
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self._request_count = 0
        self._failure_count = 0
        self._total_request_time = 0.0

    async def __aenter__(self) -> "TimeoutAwareClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter or get_rate_limiter()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
                transport=self._transport,
            )
            self.logger.debug("HTTP client initialized (timeout=%.1fs)", self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            if self._request_count > 0:
                avg_time = self._total_request_time / self._request_count
                self.logger.debug(
                    "HTTP client closed (requests=%d, failures=%d, avg_time=%.2fms)",
                    self._request_count,
                    self._failure_count,
                    avg_time * 1000,
                )

    async def _send(self, call: OutboundCall, timeout: float) -> httpx.Response:
        """Acquire a slot, then issue the request raced against ``timeout``."""
        await self.rate_limiter.acquire_slot()
        client = await self._get_client()

        start_time = time.monotonic()
        self.logger.debug("%s %s", call.method, call.url[:100])
        response = await asyncio.wait_for(
            client.request(
                call.method,
                call.url,
                params=call.params,
                json=call.body,
                timeout=timeout,
            ),
            timeout=timeout,
        )
        elapsed = time.monotonic() - start_time
        self._request_count += 1
        self._total_request_time += elapsed
        self.logger.debug(
            "%s %s -> %d (%.2fms)",
            call.method,
            call.url[:100],
            response.status_code,
            elapsed * 1000,
        )
        return response

    async def _fetch(self, call: OutboundCall) -> Tuple[Optional[httpx.Response], CallOutcome]:
        """Issue ``call`` and classify transport-level and status failures.

        Returns the response when the status is a success, otherwise a failed
        outcome and ``None``.
        """
        timeout = call.timeout if call.timeout is not None else self._timeout
        try:
            response = await self._send(call, timeout)
        except (TimeoutError, httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as exc:
            failure = classify_exception(exc, timeout)
            self._failure_count += 1
            self.logger.warning(
                "%s %s failed (%s): %s",
                call.method,
                call.url[:100],
                failure.kind.value,
                failure.message,
            )
            return None, CallOutcome.failed(failure)

        if not response.is_success:
            failure = classify_status(response.status_code)
            self._failure_count += 1
            self.logger.warning(
                "%s %s returned status %d",
                call.method,
                call.url[:100],
                response.status_code,
            )
            return None, CallOutcome.failed(failure)

        return response, CallOutcome.success(response)

    async def call(
        self,
        call: OutboundCall,
        schema: Optional[Type[BaseModel]] = None,
    ) -> CallOutcome[Any]:
        """Issue a JSON call and validate its body.

        Parameters
        ----------
        call : OutboundCall
            The request to issue.
        schema : type of pydantic.BaseModel, optional
            Model the JSON body must validate against.  Without a schema the
            decoded JSON is returned as-is.

        Returns
        -------
        CallOutcome
            The validated model (or raw JSON) on success, otherwise a
            classified failure.
        """
        response, outcome = await self._fetch(call)
        if response is None:
            return outcome

        try:
            data = response.json()
        except ValueError as exc:
            self._failure_count += 1
            self.logger.warning("Non-JSON body from %s: %s", call.url[:100], exc)
            return CallOutcome.failed(shape_failure(f"Body is not valid JSON: {exc}"))

        if schema is None:
            return CallOutcome.success(data)

        try:
            return CallOutcome.success(schema.model_validate(data))
        except ValidationError as exc:
            self._failure_count += 1
            self.logger.warning(
                "Response from %s failed %s validation (%d errors)",
                call.url[:100],
                schema.__name__,
                exc.error_count(),
            )
            self.logger.debug("Validation errors: %s", exc.errors())
            return CallOutcome.failed(
                shape_failure(f"Invalid {schema.__name__} response shape: {exc}")
            )

    async def call_bytes(self, call: OutboundCall) -> CallOutcome[Tuple[bytes, str]]:
        """Issue a call for a binary payload.

        Returns
        -------
        CallOutcome
            ``(content, mime_type)`` on success.
        """
        response, outcome = await self._fetch(call)
        if response is None:
            return outcome

        mime_type = response.headers.get("content-type", "application/octet-stream")
        mime_type = mime_type.split(";")[0].strip() or "application/octet-stream"
        return CallOutcome.success((response.content, mime_type))

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics."""
        return {
            "request_count": self._request_count,
            "failure_count": self._failure_count,
            "total_time_ms": self._total_request_time * 1000,
            "avg_time_ms": (
                (self._total_request_time / self._request_count * 1000)
                if self._request_count > 0
                else 0
            ),
        }
