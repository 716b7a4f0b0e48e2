"""Shared fixtures."""

import pytest

from kumabridge.config import Settings
from kumabridge.main import create_app
from kumabridge.telegram import TelegramClient
from kumabridge.tests.fakes import FakeTelegramAPI

AUTH_TOKEN = "tkn"
BOT_TOKEN = "123456:secret-bot-token"
CHAT_ID = "-100200300"


def make_settings(**overrides) -> Settings:
    values = {
        "webhook_auth_token": AUTH_TOKEN,
        "telegram_bot_token": BOT_TOKEN,
        "telegram_chat_id": CHAT_ID,
        "telegram_api_base_url": "https://telegram.test",
        "request_timeout": 2.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_telegram() -> FakeTelegramAPI:
    return FakeTelegramAPI()


@pytest.fixture
def telegram_client(settings, fake_telegram) -> TelegramClient:
    return TelegramClient.from_settings(settings, transport=fake_telegram.transport)


@pytest.fixture
def app(settings, telegram_client):
    return create_app(settings, telegram=telegram_client)
