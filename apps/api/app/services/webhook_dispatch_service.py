"""Webhook dispatch: condition gate, delivery and invocation logging."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import httpx

from app.core.config import settings
from app.core.errors import WebhookSecurityError
from app.core.structured_logging import build_log_context
from app.core.url_validation import is_private_address_error
from app.db.enums import AutomationLogLevel, HookDeliveryStatus, NotificationType
from app.schemas.filter import Filter
from app.schemas.hook import Hook, HookLogRecord, HookNotification
from app.schemas.meta import Model, NcContext
from app.services.filter_evaluator import FilterEvaluator
from app.services.hook_log_service import (
    HookLogSink,
    SqlHookLogSink,
    load_filter_tree,
    normalize_filter_tree,
)
from app.services.http_service import (
    response_payload_for_log,
    safe_url,
    send_webhook_request,
)
from app.services.meta_service import MetaStore
from app.services.webhook_request_builder import (
    WebhookRequest,
    build_webhook_envelope,
    build_webhook_request,
)
from app.services.webhook_template_service import parse_body, template_json
from app.services.webhooks.registry import NotificationPluginRegistry, get_registry

logger = logging.getLogger(__name__)

PRIVATE_NETWORK_MESSAGE = "Connection to a private network IP is blocked for security reasons."
LOCAL_HOOKS_HINT = "If this is intentional, set NC_ALLOW_LOCAL_HOOKS=true to allow local network webhooks."


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _user_email(user: Any) -> str | None:
    if isinstance(user, dict):
        return user.get("email")
    return getattr(user, "email", None)


def _should_log(success: bool) -> bool:
    level = settings.automation_log_level
    if success:
        return level == AutomationLogLevel.ALL.value or (settings.NC_IS_EE and level is None)
    # Every configurable level (unset, ERROR, ALL) records failures
    return True


def private_network_error() -> WebhookSecurityError:
    message = PRIVATE_NETWORK_MESSAGE
    if settings.show_local_hooks_hint:
        message = f"{message} {LOCAL_HOOKS_HINT}"
    return WebhookSecurityError(message)


class WebhookDispatcher:
    """
    Runs one hook invocation at a time per call to `invoke`.

    Log rows are written as background tasks; `flush_logs` waits for them.
    """

    def __init__(
        self,
        meta: MetaStore,
        *,
        log_sink: HookLogSink | None = None,
        plugins: NotificationPluginRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        evaluator: FilterEvaluator | None = None,
    ) -> None:
        self.meta = meta
        self.log_sink = log_sink or SqlHookLogSink()
        self.plugins = plugins or get_registry()
        self.transport = transport
        self.evaluator = evaluator or FilterEvaluator(meta)
        self._pending: set[asyncio.Task] = set()

    async def invoke(
        self,
        context: NcContext,
        *,
        hook: Hook,
        model: Model,
        view: Any = None,
        prev_data: Any = None,
        new_data: Any = None,
        user: Any = None,
        test_filters: list[Filter] | None = None,
        throw_error_on_failure: bool = False,
        test_hook: bool = False,
    ) -> HookDeliveryStatus:
        """
        Deliver `hook` for one record event (or a batch, for URL hooks).

        `view` is accepted from callers but unused; envelopes are table scoped.
        Failures are logged and swallowed unless `throw_error_on_failure`.
        """
        started = time.perf_counter()
        source = await self.meta.get_source(context, model.source_id)
        client = source.type if source else None

        notification: HookNotification | None = None
        filters: list[Filter] | None = None
        request: WebhookRequest | None = None
        record: HookLogRecord | None = None
        log_context = build_log_context(
            hook_id=hook.id,
            table_id=model.id,
            event=hook.event,
            operation=hook.operation,
            base_id=context.base_id,
        )

        try:
            notification = hook.parsed_notification()
            notification_type = notification.type if notification else None
            log_context = {**log_context, **build_log_context(notification_type=notification_type)}
            is_bulk = isinstance(new_data, list)

            if is_bulk and notification_type != NotificationType.URL.value:
                logger.info("Skipping bulk payload for non-URL hook", extra=log_context)
                return HookDeliveryStatus.SKIPPED

            if hook.condition and not test_hook:
                stored = test_filters if test_filters is not None else await self.meta.get_hook_filters(
                    context, hook.id
                )
                filters = await load_filter_tree(self.meta, context, stored)

                if is_bulk:
                    matched = [
                        row
                        for row in new_data
                        if await self.evaluator.evaluate(context, filters, row, client=client)
                    ]
                    if not matched:
                        return HookDeliveryStatus.SKIPPED
                    new_data = matched
                else:
                    # Already matched before this change: subscribers were notified then
                    if (
                        prev_data
                        and filters
                        and await self.evaluator.evaluate(context, filters, prev_data, client=client)
                    ):
                        return HookDeliveryStatus.SKIPPED
                    if not await self.evaluator.evaluate(context, filters, new_data or {}, client=client):
                        return HookDeliveryStatus.SKIPPED

            envelope = build_webhook_envelope(hook, model, prev_data, new_data)
            payload = notification.payload if notification else {}

            if notification_type == NotificationType.EMAIL.value:
                mail = {
                    "to": parse_body(payload.get("to"), envelope),
                    "subject": parse_body(payload.get("subject"), envelope),
                    "html": parse_body(payload.get("body"), envelope),
                }
                result = await self.plugins.email_adapter().mail_send(mail)
                if _should_log(success=True):
                    record = self._log_record(context, hook, notification_type, user, filters)
                    record.payload = _dumps(mail)
                    record.response = _dumps(result)

            elif notification_type == NotificationType.URL.value:
                request = build_webhook_request(payload, envelope)
                response = await send_webhook_request(request, transport=self.transport)
                if _should_log(success=True):
                    record = self._log_record(context, hook, notification_type, user, filters)
                    record.payload = _dumps(request.log_payload(dict(response.request.headers)))
                    record.response = _dumps(response_payload_for_log(response))

            else:
                adapter = self.plugins.webhook_notification_adapter(notification_type)
                result = await adapter.send_message(
                    parse_body(payload.get("body"), envelope),
                    template_json(payload, envelope),
                )
                if _should_log(success=True):
                    record = self._log_record(context, hook, notification_type, user, filters)
                    record.payload = _dumps(payload)
                    record.response = _dumps(result)

            logger.info("Webhook delivered", extra=log_context)
            return HookDeliveryStatus.DELIVERED

        except Exception as e:
            response = e.response if isinstance(e, httpx.HTTPStatusError) else None
            if response is not None:
                logger.error(
                    "Webhook failed: status=%s url=%s",
                    response.status_code,
                    safe_url(str(response.request.url)),
                    extra=log_context,
                )
            else:
                logger.error("Webhook failed: %s: %s", type(e).__name__, e, extra=log_context)

            if _should_log(success=False):
                record = self._log_record(
                    context, hook, notification.type if notification else None, user, None
                )
                if request is not None:
                    sent = dict(response.request.headers) if response is not None else None
                    record.payload = _dumps(request.log_payload(sent))
                elif notification is not None:
                    record.payload = _dumps(notification.payload)
                record.response = _dumps(response_payload_for_log(response)) if response is not None else None
                record.error_code = getattr(e, "error_code", None)
                record.error_message = str(e)
                record.error = _dumps(
                    {"name": type(e).__name__, "message": str(e), "error_code": record.error_code}
                )
                record.conditions = _dumps(normalize_filter_tree(filters)) if filters is not None else None

            if throw_error_on_failure:
                if is_private_address_error(e):
                    raise private_network_error() from e
                raise
            return HookDeliveryStatus.FAILED

        finally:
            if record is not None:
                record.execution_time = f"{(time.perf_counter() - started) * 1000:.3f}"
                record.test_call = test_hook
                self._schedule_log(record)

    def _log_record(
        self,
        context: NcContext,
        hook: Hook,
        notification_type: str | None,
        user: Any,
        filters: list[Filter] | None,
    ) -> HookLogRecord:
        return HookLogRecord(
            fk_hook_id=hook.id,
            base_id=context.base_id,
            fk_workspace_id=context.workspace_id,
            event=hook.event,
            operation=hook.operation,
            type=notification_type,
            triggered_by=_user_email(user),
            conditions=_dumps([f.model_dump(exclude_none=True) for f in filters])
            if filters is not None
            else None,
        )

    def _schedule_log(self, record: HookLogRecord) -> None:
        task = asyncio.create_task(self._write_log(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_log(self, record: HookLogRecord) -> None:
        try:
            await self.log_sink.insert(record)
        except Exception:
            logger.exception("Failed to write hook log", extra=build_log_context(hook_id=record.fk_hook_id))

    async def flush_logs(self) -> None:
        """Wait for background log writes started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
