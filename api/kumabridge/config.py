import re
from typing import Any, Literal

from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kumabridge.messages.composer import RawExcerptPolicy

DEFAULT_LISTEN_ADDR = ":8080"
DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_REQUEST_TIMEOUT = 10.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigurationError(Exception):
    """Raised when the service cannot start with the given configuration."""


def parse_duration(value: str) -> float:
    """
    Parse a duration such as ``10s``, ``500ms`` or ``1m30s`` into seconds.

    Every number needs a unit; only a plain ``0`` may go without one.
    """
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if not text:
        raise ValueError(f"invalid duration {value!r}")
    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def parse_listen_addr(value: str) -> tuple[str, int]:
    """Split ``host:port`` (``:port`` meaning all interfaces) into its parts."""
    host, sep, port_text = value.strip().rpartition(":")
    if not sep:
        raise ValueError(f"listen address {value!r} is missing a port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in listen address {value!r}") from None
    if port <= 0 or port > 65535:
        raise ValueError("listen port must be between 1 and 65535")
    return host or "0.0.0.0", port


class Settings(BaseSettings):
    # Required
    webhook_auth_token: str
    telegram_bot_token: str
    telegram_chat_id: str

    # Server
    listen_addr: str = DEFAULT_LISTEN_ADDR

    # Telegram Bot API
    telegram_api_base_url: str = DEFAULT_TELEGRAM_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Message rendering
    message_format: Literal["markdown", "html", "plain"] = "markdown"
    raw_excerpt: RawExcerptPolicy = RawExcerptPolicy.TEST

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("webhook_auth_token", "telegram_bot_token", "telegram_chat_id")
    @classmethod
    def require_value(cls, v: str, info: ValidationInfo) -> str:
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name.upper()} is required")
        return v

    @field_validator(
        "listen_addr",
        "telegram_api_base_url",
        "message_format",
        "raw_excerpt",
        "log_level",
        mode="before",
    )
    @classmethod
    def default_when_blank(cls, v: Any, info: ValidationInfo) -> Any:
        """Empty optional variables fall back to their defaults."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return cls.model_fields[info.field_name].default
        return v

    @field_validator("listen_addr")
    @classmethod
    def validate_listen_addr(cls, v: str) -> str:
        parse_listen_addr(v)
        return v

    @field_validator("telegram_api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("TELEGRAM_API_BASE_URL must use http or https")
        return v.rstrip("/")

    @field_validator("request_timeout", mode="before")
    @classmethod
    def parse_request_timeout(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return DEFAULT_REQUEST_TIMEOUT
            return parse_duration(v)
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
        return v

    @field_validator("message_format", "raw_excerpt", "log_level", mode="before")
    @classmethod
    def normalise_case(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str):
            return v.upper() if info.field_name == "log_level" else v.lower()
        return v

    @property
    def listen_host(self) -> str:
        return parse_listen_addr(self.listen_addr)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_addr(self.listen_addr)[1]


def _describe(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]).upper()
        problems.append(f"{field}: {err['msg']}")
    return "; ".join(problems)


def load_settings(env_file: str | None = ".env") -> Settings:
    """
    Load settings from the environment and ``env_file``.

    Process environment variables take precedence over values in the file.
    A missing file is not an error.

    Raises:
        ConfigurationError: if a required variable is missing or a value is invalid.
    """
    try:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigurationError(_describe(exc)) from exc


__all__ = [
    "ConfigurationError",
    "Settings",
    "load_settings",
    "parse_duration",
    "parse_listen_addr",
]
