"""Webhook envelope and outbound request construction."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from app.db.enums import HookOperation, HookVersion
from app.schemas.hook import Hook
from app.schemas.meta import Model
from app.services.webhook_template_service import parse_body, template_structured

DEFAULT_CONTENT_TYPE = "application/json"


def _as_rows(value: Any) -> list:
    return value if isinstance(value, list) else [value]


def build_webhook_envelope(
    hook: Hook,
    model: Model,
    prev_data: Any,
    new_data: Any,
) -> Any:
    """
    Payload delivered for a record event.

    v2 hooks get `{type, id, data: {...}}`; bulk inserts carry a row count
    instead of rows. v1 hooks receive the new data unchanged.
    """
    if hook.version != HookVersion.V2.value:
        return new_data

    data: dict[str, Any] = {"table_id": model.id, "table_name": model.title}
    if prev_data is not None:
        data["previous_rows"] = _as_rows(prev_data)
    if hook.operation == HookOperation.BULK_INSERT.value:
        if isinstance(new_data, list):
            data["rows_inserted"] = len(new_data)
        else:
            data["rows_inserted"] = 0 if new_data is None else 1
    elif new_data is not None:
        data["rows"] = _as_rows(new_data)

    return {
        "type": f"records.{hook.event}.{hook.operation}",
        "id": str(uuid.uuid4()),
        "data": data,
    }


@dataclass
class WebhookRequest:
    """A fully templated URL-hook request."""

    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    auth: Any = None

    def request_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for `httpx.AsyncClient.request`."""
        kwargs: dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "params": self.params,
            "headers": self.headers,
        }
        if isinstance(self.body, (dict, list)):
            kwargs["json"] = self.body
        elif self.body is not None and self.body != "":
            kwargs["content"] = self.body if isinstance(self.body, (str, bytes)) else str(self.body)
        if isinstance(self.auth, dict) and ("username" in self.auth or "password" in self.auth):
            kwargs["auth"] = (str(self.auth.get("username") or ""), str(self.auth.get("password") or ""))
        return kwargs

    def log_payload(self, sent_headers: dict[str, str] | None = None) -> dict[str, Any]:
        """Request as recorded in hook logs; headers actually sent win."""
        return {
            "url": self.url,
            "method": self.method,
            "params": self.params,
            "headers": {**(sent_headers or {}), **self.headers},
            "data": self.body,
        }


def _enabled_pairs(items: Any) -> list[tuple[str, Any]]:
    pairs = []
    for item in items or []:
        if isinstance(item, dict) and item.get("name") and item.get("enabled"):
            pairs.append((item["name"], item.get("value")))
    return pairs


def ensure_content_type(headers: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Header list with an enabled Content-Type, adding `application/json` if absent."""
    headers = list(headers or [])
    has_content_type = any(
        isinstance(h, dict)
        and str(h.get("name") or "").lower() == "content-type"
        and h.get("enabled")
        for h in headers
    )
    if not has_content_type:
        headers.append({"name": "Content-Type", "enabled": True, "value": DEFAULT_CONTENT_TYPE})
    return headers


def build_webhook_request(api_meta: dict[str, Any] | None, envelope: Any) -> WebhookRequest:
    """Template a URL notification's settings against the envelope."""
    api_meta = dict(api_meta or {})
    headers = ensure_content_type(api_meta.get("headers"))

    body = api_meta.get("body")
    if body:
        body = template_structured(body, envelope)
    auth = api_meta.get("auth")
    if auth:
        auth = template_structured(auth, envelope)

    return WebhookRequest(
        method=str(parse_body(api_meta.get("method") or "POST", envelope)).upper(),
        url=parse_body(api_meta.get("path") or "", envelope),
        params={
            name: parse_body(value, envelope)
            for name, value in _enabled_pairs(api_meta.get("parameters"))
        },
        headers={
            name: str(parse_body(value, envelope) if value is not None else "")
            for name, value in _enabled_pairs(headers)
        },
        body=body,
        auth=auth,
    )
