"""Tests for the Telegram Bot API client."""

import httpx
import pytest

from kumabridge.telegram import (
    ConnectionFailedError,
    DeliveryReceipt,
    DeliveryTimeoutError,
    EmptyMessageError,
    MalformedResponseError,
    TelegramClient,
    UpstreamRejectedError,
    UpstreamStatusError,
)
from kumabridge.tests.conftest import BOT_TOKEN, CHAT_ID, make_settings


class TestSend:
    @pytest.mark.asyncio
    async def test_posts_send_message(self, telegram_client, fake_telegram):
        receipt = await telegram_client.send("hello")

        assert receipt == DeliveryReceipt(status_code=200, message_id=1)
        assert fake_telegram.call_count == 1
        request = fake_telegram.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"https://telegram.test/bot{BOT_TOKEN}/sendMessage"
        assert request.headers["content-type"] == "application/json"
        assert fake_telegram.sent_messages[0] == {
            "chat_id": CHAT_ID,
            "text": "hello",
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": True,
        }

    @pytest.mark.asyncio
    async def test_plain_style_omits_parse_mode(self, fake_telegram):
        settings = make_settings(message_format="plain")
        client = TelegramClient.from_settings(settings, transport=fake_telegram.transport)

        await client.send("hello")

        assert "parse_mode" not in fake_telegram.sent_messages[0]

    @pytest.mark.asyncio
    async def test_html_style_parse_mode(self, fake_telegram):
        settings = make_settings(message_format="html")
        client = TelegramClient.from_settings(settings, transport=fake_telegram.transport)

        await client.send("<b>hi</b>")

        assert fake_telegram.sent_messages[0]["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_is_not_sent(self, telegram_client, fake_telegram, text):
        with pytest.raises(EmptyMessageError):
            await telegram_client.send(text)
        assert fake_telegram.call_count == 0

    @pytest.mark.asyncio
    async def test_missing_message_id(self, telegram_client, fake_telegram):
        fake_telegram.respond_with(200, {"ok": True, "result": True})

        receipt = await telegram_client.send("hello")

        assert receipt.message_id is None

    def test_trailing_slash_in_base_url(self):
        client = TelegramClient("https://telegram.test/", "tok", CHAT_ID)
        assert client.endpoint == "https://telegram.test/bottok/sendMessage"


class TestFailures:
    @pytest.mark.asyncio
    async def test_error_status_includes_truncated_body(self, telegram_client, fake_telegram):
        fake_telegram.respond_with(500, b"x" * 5000)

        with pytest.raises(UpstreamStatusError) as exc_info:
            await telegram_client.send("hello")

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "x" * 512
        assert str(exc_info.value).startswith("telegram API returned status 500: xxx")

    @pytest.mark.asyncio
    async def test_rejected_with_description(self, telegram_client, fake_telegram):
        fake_telegram.respond_with(
            200, {"ok": False, "description": "Bad Request: can't parse entities"}
        )

        with pytest.raises(UpstreamRejectedError) as exc_info:
            await telegram_client.send("hello")

        assert str(exc_info.value) == "telegram API error: Bad Request: can't parse entities"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"ok": False}, {"ok": "true"}, {"description": ""}])
    async def test_rejected_without_description(self, telegram_client, fake_telegram, body):
        fake_telegram.respond_with(200, body)

        with pytest.raises(UpstreamRejectedError) as exc_info:
            await telegram_client.send("hello")

        assert exc_info.value.description == "unknown error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"<html>oops</html>", b"[1, 2]", b""])
    async def test_malformed_success_response(self, telegram_client, fake_telegram, body):
        fake_telegram.respond_with(200, body)

        with pytest.raises(MalformedResponseError):
            await telegram_client.send("hello")

    @pytest.mark.asyncio
    async def test_deadline(self, telegram_client, fake_telegram):
        fake_telegram.delay = 5

        with pytest.raises(DeliveryTimeoutError):
            await telegram_client.send("hello", timeout=0.05)

        assert fake_telegram.cancelled is True

    @pytest.mark.asyncio
    async def test_transport_timeout(self, telegram_client, fake_telegram):
        fake_telegram.fail_with(httpx.ReadTimeout("read timed out"))

        with pytest.raises(DeliveryTimeoutError):
            await telegram_client.send("hello")

    @pytest.mark.asyncio
    async def test_connection_failure_hides_bot_token(self, telegram_client, fake_telegram):
        fake_telegram.fail_with(
            httpx.ConnectError(f"cannot reach https://telegram.test/bot{BOT_TOKEN}/sendMessage")
        )

        with pytest.raises(ConnectionFailedError) as exc_info:
            await telegram_client.send("hello")

        message = str(exc_info.value)
        assert BOT_TOKEN not in message
        assert "ConnectError" in message
        assert "bot***" in message

    @pytest.mark.asyncio
    async def test_error_body_hides_bot_token(self, telegram_client, fake_telegram):
        fake_telegram.respond_with(404, f"no such bot {BOT_TOKEN}")

        with pytest.raises(UpstreamStatusError) as exc_info:
            await telegram_client.send("hello")

        assert BOT_TOKEN not in str(exc_info.value)
