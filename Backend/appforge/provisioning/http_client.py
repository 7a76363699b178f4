# appforge/provisioning/http_client.py
"""
Rate-limited, retrying JSON client shared by the provisioners.

Each client instance keeps its own spacing state: consecutive request starts
are at least `min_interval` seconds apart, 429 is retried with exponential
backoff for every method, gateway and transport errors only for idempotent
methods (a POST that timed out may already have created something), and
every other non-2xx response is raised as a ProvisioningHttpError that
carries the full response body.
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from appforge.core.config import settings
from appforge.core.exceptions import ProvisioningError, ProvisioningHttpError
from appforge.core.logging import log
from appforge.lib.monitoring import record_provider_request


RATE_LIMITED = 429
GATEWAY_STATUSES = {502, 503, 504}
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RateLimiterState:
    """Start time of the most recent request, in clock seconds."""
    last_request_time: Optional[float] = None


class RateLimitedClient:
    """
    Async HTTP client with request spacing and 429 backoff.

    `clock` and `sleep` are injectable so spacing and backoff can be tested
    without real waits.
    """

    def __init__(
        self,
        service: str,
        base_url: str,
        token: str,
        min_interval: float,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        default_params: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        timeout: Optional[float] = None,
    ):
        self.service = service
        self.min_interval = min_interval
        self.max_retries = settings.http.max_retries if max_retries is None else max_retries
        self.base_delay = settings.http.base_delay if base_delay is None else base_delay
        self.default_params = {k: v for k, v in (default_params or {}).items() if v}
        self.state = RateLimiterState()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout or settings.http.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ═══════════════════════════════════════════════════════
    # SPACING
    # ═══════════════════════════════════════════════════════

    async def _wait_for_slot(self) -> None:
        # The lock stays held across the wait so concurrent callers queue up
        # behind each other instead of all waking at the same instant.
        async with self._lock:
            last = self.state.last_request_time
            if last is not None:
                elapsed = self._clock() - last
                if elapsed < self.min_interval:
                    await self._sleep(self.min_interval - elapsed)
            self.state.last_request_time = self._clock()

    # ═══════════════════════════════════════════════════════
    # REQUESTS
    # ═══════════════════════════════════════════════════════

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotent: Optional[bool] = None,
    ) -> Any:
        """
        Send one logical request, retrying transient failures.

        Args:
            endpoint: Path relative to the client's base URL
            method: HTTP verb
            json: Optional JSON body
            params: Extra query parameters, merged over the client defaults
            idempotent: Whether gateway and transport errors may be retried;
                defaults to True for GET, HEAD, OPTIONS, PUT and DELETE

        Returns:
            The decoded JSON body, raw text for non-JSON bodies, or None when
            the response is empty

        Raises:
            ProvisioningHttpError for non-retryable statuses, or the last
            error once max_retries is exhausted
        """
        query = {**self.default_params, **(params or {})}
        if idempotent is None:
            idempotent = method.upper() in IDEMPOTENT_METHODS
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            await self._wait_for_slot()

            try:
                response = await self._client.request(method, endpoint, json=json, params=query or None)
            except httpx.TransportError as e:
                record_provider_request(self.service, "transport_error")
                last_error = ProvisioningError(self.service, f"{method} {endpoint} failed: {e}")
                if not idempotent:
                    raise last_error from e
            else:
                if response.is_success:
                    record_provider_request(self.service, "ok")
                    return self._decode(response)

                error = self._build_error(response, endpoint, method)
                retryable = response.status_code == RATE_LIMITED or (
                    idempotent and response.status_code in GATEWAY_STATUSES
                )
                if not retryable:
                    record_provider_request(self.service, "error")
                    raise error
                record_provider_request(self.service, "retryable")
                last_error = error

            if attempt < self.max_retries:
                delay = self.base_delay * (2 ** attempt)
                log("HTTP", f"⏳ {self.service} {method} {endpoint} retry {attempt + 1}/{self.max_retries} in {delay:.1f}s")
                await self._sleep(delay)

        log("HTTP", f"❌ {self.service} {method} {endpoint} gave up after {self.max_retries + 1} attempts")
        raise last_error

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(endpoint, "GET", params=params)

    async def post(self, endpoint: str, body: Optional[Any] = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(endpoint, "POST", json=body, params=params)

    async def delete(self, endpoint: str) -> Any:
        return await self.request(endpoint, "DELETE")

    # ═══════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _build_error(self, response: httpx.Response, endpoint: str, method: str) -> ProvisioningHttpError:
        body = response.text
        try:
            body = json.dumps(json.loads(body), indent=2)
        except ValueError:
            pass
        return ProvisioningHttpError(
            service=self.service,
            status_code=response.status_code,
            status_text=response.reason_phrase,
            endpoint=endpoint,
            method=method,
            body=body,
        )
