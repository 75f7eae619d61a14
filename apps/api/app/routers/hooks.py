"""Hooks router - test invocations and invocation logs."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_webhook_dispatcher
from app.core.errors import WebhookDeliveryError
from app.schemas.hook import HookLogRead, HookTestRequest, HookTestResponse
from app.schemas.meta import NcContext
from app.services import hook_log_service
from app.services.webhook_dispatch_service import WebhookDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/test", response_model=HookTestResponse)
async def test_hook(
    body: HookTestRequest,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
):
    """
    Fire a hook once against sample data.

    Conditions are skipped and delivery errors come back as 400 with the
    error message.
    """
    context = NcContext(base_id=body.table.base_id)
    try:
        status = await dispatcher.invoke(
            context,
            hook=body.hook,
            model=body.table,
            prev_data=body.prev_data,
            new_data=body.data,
            user={"email": body.user_email} if body.user_email else None,
            test_filters=body.filters,
            throw_error_on_failure=True,
            test_hook=True,
        )
    except (WebhookDeliveryError, httpx.HTTPError) as e:
        logger.warning("Test hook %s failed: %s", body.hook.id, type(e).__name__)
        raise HTTPException(status_code=400, detail=str(e))
    return HookTestResponse(status=status.value)


@router.get("/{hook_id}/logs", response_model=list[HookLogRead])
def list_hook_logs(
    hook_id: str,
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Most recent invocation logs for a hook."""
    return hook_log_service.list_hook_logs(db, hook_id, limit=limit, offset=offset)
