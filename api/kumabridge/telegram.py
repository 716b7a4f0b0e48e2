"""Telegram Bot API client used to deliver notifications."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from kumabridge.config import Settings
from kumabridge.messages.styles import get_style

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_BYTES = 512


class DeliveryError(Exception):
    """A notification could not be delivered to Telegram."""


class EmptyMessageError(DeliveryError):
    pass


class DeliveryTimeoutError(DeliveryError):
    pass


class ConnectionFailedError(DeliveryError):
    pass


class MalformedResponseError(DeliveryError):
    pass


class UpstreamStatusError(DeliveryError):
    """Telegram answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"telegram API returned status {status_code}: {body}")


class UpstreamRejectedError(DeliveryError):
    """Telegram answered 2xx but reported ``ok: false``."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(f"telegram API error: {description}")


@dataclass(frozen=True)
class DeliveryReceipt:
    status_code: int
    message_id: Optional[int] = None


class TelegramClient:
    """
    Sends messages to one chat through ``sendMessage``.

    The underlying ``httpx.AsyncClient`` and its connection pool are shared by
    all concurrent requests. Each ``send`` makes exactly one attempt.
    """

    def __init__(
        self,
        base_url: str,
        bot_token: str,
        chat_id: str,
        parse_mode: Optional[str] = "MarkdownV2",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.chat_id = chat_id
        self.parse_mode = parse_mode
        self.timeout = timeout
        self._bot_token = bot_token
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "TelegramClient":
        return cls(
            base_url=settings.telegram_api_base_url,
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            parse_mode=get_style(settings.message_format).parse_mode,
            timeout=settings.request_timeout,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/bot{self._bot_token}/sendMessage"

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def _redact(self, text: str) -> str:
        if not self._bot_token:
            return text
        return text.replace(self._bot_token, "***")

    async def send(self, text: str, timeout: Optional[float] = None) -> DeliveryReceipt:
        """
        Deliver ``text`` to the configured chat.

        Args:
            text: Message text, already escaped for ``parse_mode``.
            timeout: Deadline in seconds for the whole call. Defaults to the
                client timeout.

        Raises:
            EmptyMessageError: ``text`` is blank; nothing is sent.
            DeliveryTimeoutError: Telegram did not answer before the deadline.
            ConnectionFailedError: connection, DNS or TLS failure.
            UpstreamStatusError: non-2xx response.
            MalformedResponseError: 2xx response that is not a JSON object.
            UpstreamRejectedError: 2xx response with ``ok`` not true.
        """
        if not text.strip():
            raise EmptyMessageError("telegram message is empty")

        body = {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if self.parse_mode:
            body["parse_mode"] = self.parse_mode

        deadline = self.timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(self._post(body), deadline)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise DeliveryTimeoutError(
                f"telegram API did not respond within {deadline:g}s"
            ) from None
        except httpx.HTTPError as exc:
            raise ConnectionFailedError(
                self._redact(f"telegram request failed: {type(exc).__name__}: {exc}")
            ) from None

    async def _post(self, body: dict) -> DeliveryReceipt:
        async with self._client.stream("POST", self.endpoint, json=body) as response:
            if response.status_code >= 300:
                excerpt = await _read_prefix(response, MAX_ERROR_BODY_BYTES)
                raise UpstreamStatusError(
                    response.status_code,
                    self._redact(excerpt.decode("utf-8", errors="replace").strip()),
                )
            content = await response.aread()

        try:
            data = json.loads(content)
        except ValueError:
            raise MalformedResponseError("decode telegram response: invalid JSON") from None
        if not isinstance(data, dict):
            raise MalformedResponseError("decode telegram response: expected a JSON object")

        if data.get("ok") is not True:
            description = data.get("description")
            if not isinstance(description, str) or not description:
                description = "unknown error"
            raise UpstreamRejectedError(self._redact(description))

        result = data.get("result")
        message_id = result.get("message_id") if isinstance(result, dict) else None
        if not isinstance(message_id, int) or isinstance(message_id, bool):
            message_id = None
        logger.debug("Telegram accepted message %s for chat %s", message_id, self.chat_id)
        return DeliveryReceipt(status_code=response.status_code, message_id=message_id)

    async def aclose(self) -> None:
        await self._client.aclose()


async def _read_prefix(response: httpx.Response, limit: int) -> bytes:
    """Read at most ``limit`` bytes of a streamed response body."""
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer.extend(chunk)
        if len(buffer) >= limit:
            break
    return bytes(buffer[:limit])
