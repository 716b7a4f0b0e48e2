"""Turning webhook payloads into Telegram message text."""

from kumabridge.messages.composer import (
    RawExcerptPolicy,
    Status,
    classify_status,
    compose,
    is_test_notification,
)
from kumabridge.messages.payload import decode_payload, lookup
from kumabridge.messages.styles import MessageStyle, get_style

__all__ = [
    "MessageStyle",
    "RawExcerptPolicy",
    "Status",
    "classify_status",
    "compose",
    "decode_payload",
    "get_style",
    "is_test_notification",
    "lookup",
]
