"""Outbound HTTP for URL webhooks with private-network protection."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from app.core.config import settings
from app.core.url_validation import assert_public_host
from app.services.webhook_request_builder import WebhookRequest

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def safe_url(url: str | None) -> str:
    """URL without query string or fragment, for logs."""
    if not url:
        return ""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


class SsrfGuardTransport(httpx.AsyncBaseTransport):
    """
    Refuses requests whose host resolves to a non-public address.

    Runs for every request the client sends, so each redirect hop is checked
    as well as the initial URL.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = request.url
        port = url.port or _DEFAULT_PORTS.get(url.scheme, 80)
        await assert_public_host(url.host, port, request=request)
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()


def build_webhook_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Client for webhook delivery; guarded unless NC_ALLOW_LOCAL_HOOKS is set."""
    if not settings.NC_ALLOW_LOCAL_HOOKS:
        transport = SsrfGuardTransport(transport)
    return httpx.AsyncClient(
        transport=transport,
        timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
        follow_redirects=True,
        max_redirects=settings.WEBHOOK_MAX_REDIRECTS,
    )


def response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def response_payload_for_log(response: httpx.Response) -> dict[str, Any]:
    return {
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "headers": dict(response.headers),
        "data": response_body(response),
    }


async def send_webhook_request(
    request: WebhookRequest,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """
    Send a templated webhook request once.

    No retries: a failed delivery is final. Non-2xx responses raise
    httpx.HTTPStatusError.
    """
    async with build_webhook_client(transport) as client:
        response = await client.request(**request.request_kwargs())
        logger.info(
            "Webhook response: %s %s -> %s",
            request.method,
            safe_url(request.url),
            response.status_code,
        )
        response.raise_for_status()
        return response
