"""
Base payment client implementing shared concerns: http, auth, logging, error mapping.

Concrete providers subclass and implement provider-specific endpoints. Calls
are never retried; a timeout is reported like any other failure.
"""
from __future__ import annotations

import json
import time
from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from domain.payment.exceptions import PaymentProviderError


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str,
        timeouts: Optional[dict[str, float]] = None,
        headers: Optional[dict[str, str]] = None,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeouts_cfg = timeouts or {"connect": 10.0, "read": 45.0, "write": 45.0, "total": 45.0}
        self._headers = headers or {}
        self._debug = debug
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self.timeouts,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Issue one call and return the decoded JSON body.

        Raises PaymentProviderError on transport failure, timeout, non-2xx
        status or a body that is not JSON.
        """
        content = None
        headers = None
        if body is not None:
            content = json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
            headers = {"Content-Type": "application/json"}

        if self._debug:
            self._log("provider_request", method=method, path=path, params=params, data=body)

        started = time.perf_counter()
        try:
            resp = await self._get_client().request(
                method, path, content=content, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.error("provider_timeout", provider=self.provider, method=method, path=path)
            raise PaymentProviderError(
                "Payment provider timed out", provider=self.provider, timeout=True
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "provider_transport_error",
                provider=self.provider,
                method=method,
                path=path,
                error=str(exc),
            )
            raise PaymentProviderError(
                "Payment provider unreachable", provider=self.provider
            ) from exc
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        try:
            payload = resp.json() if resp.content else None
        except ValueError:
            payload = None
            if resp.is_success:
                logger.error(
                    "provider_invalid_json",
                    provider=self.provider,
                    method=method,
                    path=path,
                    status_code=resp.status_code,
                )
                raise PaymentProviderError(
                    "Payment provider returned an unreadable response",
                    provider=self.provider,
                    status_code=resp.status_code,
                )

        if self._debug:
            self._log(
                "provider_response",
                method=method,
                path=path,
                status_code=resp.status_code,
                elapsed_ms=elapsed_ms,
                response=payload,
            )

        if not resp.is_success:
            logger.error(
                "provider_error_response",
                provider=self.provider,
                method=method,
                path=path,
                status_code=resp.status_code,
                response=payload,
                body_bytes=len(resp.content),
            )
            raise PaymentProviderError(
                f"Payment provider returned HTTP {resp.status_code}",
                provider=self.provider,
                status_code=resp.status_code,
            )
        return payload

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
