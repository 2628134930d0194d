"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from app.schemas import HealthResponse, WirelessTagPayload
from models.records import UpdateContext, WirelessTagUpdate
from services.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

DISCONNECT_POLL_INTERVAL = 0.1

router = APIRouter()


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


async def _cancel_on_disconnect(request: Request, ctx: UpdateContext) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)
    logger.info("client disconnected, cancelling update")
    ctx.cancel()


async def dispatch_update(
    request: Request, dispatcher: Dispatcher, update: WirelessTagUpdate
) -> None:
    """Run the dispatcher in the threadpool with a context tied to the client connection."""
    ctx = UpdateContext()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, ctx))
    try:
        await run_in_threadpool(dispatcher.update, ctx, update)
    finally:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(dispatcher: Dispatcher = Depends(get_dispatcher)) -> HealthResponse:
    return HealthResponse(status="ok", sinks=len(dispatcher.sinks))


# The tag manager is pointed at an arbitrary URL on this host, so every path
# other than the ones above accepts updates.
@router.post(
    "/{path:path}",
    response_class=PlainTextResponse,
    summary="Accept a reading pushed by the wireless tag manager.",
)
async def receive_update(
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> PlainTextResponse:
    try:
        body = await request.body()
    except ClientDisconnect as exc:
        logger.error("error reading request body: %r", exc)
        return PlainTextResponse(
            "unable to read request body",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    try:
        payload = WirelessTagPayload.model_validate_json(body)
    except ValidationError as exc:
        logger.error(
            "error: %s",
            exc,
            extra={
                "content_length": request.headers.get("content-length"),
                "body_size": len(body),
            },
        )
        logger.error("request body: %s", body.decode("utf-8", errors="replace"))
        return PlainTextResponse(
            "unable to parse request body",
            status_code=422,
        )

    update = payload.to_update()
    logger.info("update: %r", update, extra={"tag_id": update.tag_id})

    try:
        await dispatch_update(request, dispatcher, update)
    except Exception:
        logger.exception("error saving update", extra={"tag_id": update.tag_id})
        return PlainTextResponse(
            "unable to save data",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return PlainTextResponse(f"OK! {update!r}\r\n")
