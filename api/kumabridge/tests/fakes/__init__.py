"""Fake external services for testing."""

from .telegram import FakeTelegramAPI

__all__ = ["FakeTelegramAPI"]
