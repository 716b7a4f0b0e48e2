"""Compose Telegram notification text from Uptime Kuma webhook payloads."""

import json
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from kumabridge.messages.payload import lookup
from kumabridge.messages.styles import MARKDOWN_V2, MessageStyle

MAX_RAW_CHARS = 3900
MAX_FIELD_CHARS = 512
TRUNCATION_MARKER = "..."
TEST_KEYWORD = "test"

TEST_MARKER = "🧪"
FALLBACK_MARKER = "📋"

# Keys copied into the "key fields" digest, per top-level object.
DIGEST_KEYS = {
    "heartbeat": ("status", "time", "msg", "ping", "duration"),
    "monitor": ("name", "hostname", "port", "type", "timeout"),
}

# Values Uptime Kuma uses for "not set".
_BARE_URLS = {"http://", "https://"}


class Status(str, Enum):
    UP = "up"
    DOWN = "down"
    PENDING = "pending"
    MAINTENANCE = "maintenance"
    UNKNOWN = "unknown"


STATUS_MARKERS = {
    Status.UP: "✅",
    Status.DOWN: "❌",
    Status.PENDING: "⏳",
    Status.MAINTENANCE: "🛠️",
    Status.UNKNOWN: "ℹ️",
}

# Uptime Kuma heartbeat codes and their spelled-out names.
_STATUS_VALUES = {
    "0": Status.DOWN,
    "1": Status.UP,
    "2": Status.PENDING,
    "3": Status.MAINTENANCE,
    "down": Status.DOWN,
    "up": Status.UP,
    "pending": Status.PENDING,
    "maintenance": Status.MAINTENANCE,
}


class RawExcerptPolicy(str, Enum):
    """When to append the payload digest below the extracted fields."""

    TEST = "test"
    ALWAYS = "always"
    NEVER = "never"

    def applies(self, is_test: bool) -> bool:
        if self is RawExcerptPolicy.ALWAYS:
            return True
        if self is RawExcerptPolicy.TEST:
            return is_test
        return False


def clip(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut."""
    if len(text) > limit:
        return text[:limit] + TRUNCATION_MARKER
    return text


def _status_field(payload: dict) -> Optional[str]:
    return lookup(payload, "heartbeat", "status") or lookup(payload, "status")


def classify_status(payload: dict) -> Status:
    """Map the heartbeat (or top-level) status to a category."""
    value = _status_field(payload)
    if value is None:
        return Status.UNKNOWN
    return _STATUS_VALUES.get(value.lower(), Status.UNKNOWN)


def is_test_notification(payload: dict) -> bool:
    """
    True for the "Test" button in Uptime Kuma's notification settings.

    Those payloads carry no heartbeat status. A real event keeps its status
    header even when a monitor name or message happens to contain "test".
    """
    if _status_field(payload) is not None:
        return False
    msg = lookup(payload, "msg") or ""
    return TEST_KEYWORD in msg.lower()


def raw_excerpt(raw: bytes) -> str:
    """The raw body as text, stripped and bounded."""
    return clip(raw.decode("utf-8", errors="replace").strip(), MAX_RAW_CHARS)


def _field(payload: dict, *path: str) -> Optional[str]:
    value = lookup(payload, *path)
    if value is None:
        return None
    return clip(value, MAX_FIELD_CHARS)


def _header(style: MessageStyle, status: Status, is_test: bool) -> str:
    if is_test:
        return f"{TEST_MARKER} {style.bold('Uptime Kuma test notification')}"
    label = status.value.upper()
    return f"{STATUS_MARKERS[status]} {style.bold('Uptime Kuma')}: {style.bold(label)}"


def _field_lines(payload: dict, style: MessageStyle, is_test: bool) -> list[str]:
    lines = []

    name = _field(payload, "monitor", "name")
    if name:
        lines.append(f"📊 {style.bold('Monitor')}: {style.code(name)}")

    url = _field(payload, "monitor", "url")
    if url and url.lower() not in _BARE_URLS:
        lines.append(f"🔗 {style.bold('URL')}: {style.escape(url)}")

    hostname = _field(payload, "monitor", "hostname")
    if hostname:
        port = _field(payload, "monitor", "port")
        address = f"{hostname}:{port}" if port and port != "0" else hostname
        lines.append(f"🖥️ {style.bold('Host')}: {style.code(address)}")

    heartbeat_msg = _field(payload, "heartbeat", "msg")
    msg = _field(payload, "msg")
    if heartbeat_msg and heartbeat_msg != "N/A":
        lines.append(f"💬 {style.bold('Message')}: {style.escape(heartbeat_msg)}")
    elif msg and not is_test:
        lines.append(f"💬 {style.bold('Message')}: {style.escape(msg)}")

    ping = _field(payload, "heartbeat", "ping")
    if ping:
        lines.append(f"⚡ {style.bold('Latency')}: {style.code(f'{ping} ms')}")

    timestamp = _field(payload, "heartbeat", "localDateTime") or _field(
        payload, "heartbeat", "time"
    )
    if timestamp:
        lines.append(f"🕐 {style.bold('Time')}: {style.code(timestamp)}")

    monitor_type = _field(payload, "monitor", "type")
    if monitor_type:
        line = f"🔧 {style.bold('Type')}: {style.code(monitor_type)}"
        timeout = _field(payload, "monitor", "timeout")
        if timeout:
            line += f", {style.bold('Timeout')}: {style.code(f'{timeout}s')}"
        lines.append(line)

    return lines


def _digest(payload: dict) -> dict:
    digest = {}
    for section, keys in DIGEST_KEYS.items():
        source = payload.get(section)
        if not isinstance(source, dict):
            continue
        picked = {key: source[key] for key in keys if key in source}
        if picked:
            digest[section] = picked
    if "msg" in payload:
        digest["msg"] = payload["msg"]
    return digest


def _dump_json(value: Any, depth: int = 0) -> str:
    """
    Indented, key-sorted JSON in the layout of ``json.dumps(indent=2)``.

    Decimals are written from their own text, so ``12.50`` stays ``12.50``
    instead of passing through a binary float.
    """
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict) and value:
        inner = "  " * (depth + 1)
        items = [
            f"{inner}{json.dumps(str(key), ensure_ascii=False)}: {_dump_json(value[key], depth + 1)}"
            for key in sorted(value, key=str)
        ]
        return "{\n" + ",\n".join(items) + "\n" + "  " * depth + "}"
    if isinstance(value, list) and value:
        inner = "  " * (depth + 1)
        items = [f"{inner}{_dump_json(item, depth + 1)}" for item in value]
        return "[\n" + ",\n".join(items) + "\n" + "  " * depth + "]"
    return json.dumps(value, ensure_ascii=False)


def _raw_section(raw: bytes, style: MessageStyle) -> str:
    return f"📄 {style.bold('Raw payload')}:\n{style.block(raw_excerpt(raw))}"


def _digest_section(payload: dict, raw: bytes, style: MessageStyle) -> str:
    digest = _digest(payload)
    if not digest:
        return _raw_section(raw, style)
    try:
        dumped = _dump_json(digest)
    except (RecursionError, TypeError, ValueError):
        return _raw_section(raw, style)
    return f"📄 {style.bold('Key fields')}:\n{style.block(clip(dumped, MAX_RAW_CHARS), 'json')}"


def compose(
    payload: dict,
    raw: bytes,
    style: MessageStyle = MARKDOWN_V2,
    raw_excerpt_policy: RawExcerptPolicy = RawExcerptPolicy.TEST,
) -> str:
    """
    Build the notification text for one webhook delivery.

    ``payload`` is the decoded body (``{}`` when decoding failed) and ``raw``
    the body as received. Field values are escaped one by one for ``style``;
    labels and markup are emitted as-is.

    When nothing recognisable was extracted, the message falls back to the
    bounded raw body. Otherwise a digest of the payload is appended whenever
    ``raw_excerpt_policy`` applies.
    """
    is_test = is_test_notification(payload)
    lines = _field_lines(payload, style, is_test)

    if not lines and _status_field(payload) is None and not is_test:
        header = f"{FALLBACK_MARKER} {style.bold('Uptime Kuma notification')}"
        return f"{header}\n\n{_raw_section(raw, style)}"

    header = _header(style, classify_status(payload), is_test)
    text = "\n".join([header, ""] + lines).strip()

    if raw_excerpt_policy.applies(is_test):
        text = f"{text}\n\n{_digest_section(payload, raw, style)}"
    return text
