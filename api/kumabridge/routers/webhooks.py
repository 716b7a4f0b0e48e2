import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.requests import ClientDisconnect

from kumabridge.auth import require_webhook_token
from kumabridge.messages import compose, decode_payload, get_style
from kumabridge.telegram import DeliveryError, DeliveryReceipt, TelegramClient

MAX_PAYLOAD_BYTES = 1 << 20  # 1 MiB
LOG_PREVIEW_CHARS = 2000

# Non-standard status for requests whose client went away before we answered.
CLIENT_CLOSED_REQUEST = 499

wh_logger = logging.getLogger("webhooks")

router = APIRouter(tags=["webhooks"])


async def read_body(request: Request, limit: int = MAX_PAYLOAD_BYTES) -> bytes:
    """Read the request body, refusing anything larger than ``limit`` bytes."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared = int(content_length)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Content-Length")
        if declared > limit:
            raise HTTPException(status_code=400, detail="Request body too large")

    body = bytearray()
    try:
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > limit:
                raise HTTPException(status_code=400, detail="Request body too large")
    except ClientDisconnect:
        wh_logger.warning("Client disconnected while sending the request body")
        raise HTTPException(status_code=400, detail="Failed to read body")

    if not body.strip():
        raise HTTPException(status_code=400, detail="Empty body")
    return bytes(body)


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def _deliver(
    request: Request, telegram: TelegramClient, text: str, timeout: float
) -> Optional[DeliveryReceipt]:
    """
    Send ``text`` while watching the inbound connection.

    Returns None if the client disconnected first, in which case the outbound
    call has been cancelled.
    """
    delivery = asyncio.ensure_future(telegram.send(text, timeout=timeout))
    disconnect = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({delivery, disconnect}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (delivery, disconnect):
            if not task.done():
                task.cancel()
        await asyncio.gather(delivery, disconnect, return_exceptions=True)

    if delivery.cancelled():
        return None
    return delivery.result()


@router.post(
    "/uptimekuma-webhook",
    status_code=202,
    summary="Relay an Uptime Kuma notification to Telegram",
    dependencies=[Depends(require_webhook_token)],
)
async def receive_uptime_kuma(request: Request):
    settings = request.app.state.settings
    telegram: TelegramClient = request.app.state.telegram

    body = await read_body(request)
    wh_logger.debug(
        "Webhook body (%d bytes): %s",
        len(body),
        body[:LOG_PREVIEW_CHARS].decode("utf-8", errors="replace"),
    )

    # Malformed payloads still produce a notification built from the raw body
    try:
        payload = decode_payload(body)
    except ValueError as exc:
        wh_logger.warning("Invalid JSON payload, relaying raw body: %s", exc)
        payload = {}

    text = compose(
        payload,
        body,
        style=get_style(settings.message_format),
        raw_excerpt_policy=settings.raw_excerpt,
    )

    try:
        receipt = await _deliver(request, telegram, text, settings.request_timeout)
    except DeliveryError as exc:
        wh_logger.error("Failed to send telegram message: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to forward notification")

    if receipt is None:
        wh_logger.warning("Client disconnected before delivery finished; telegram request cancelled")
        return JSONResponse(
            status_code=CLIENT_CLOSED_REQUEST,
            content={"error": {"code": CLIENT_CLOSED_REQUEST, "message": "Client closed request"}},
        )

    wh_logger.info("Relayed notification to telegram (message %s)", receipt.message_id)
    return JSONResponse(status_code=202, content={"ok": True})
