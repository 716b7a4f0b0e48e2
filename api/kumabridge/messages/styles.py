"""
Rendering styles for Telegram messages.

A style decides how labels are emphasised, how field values are escaped and
which ``parse_mode`` Telegram is told to use. Labels passed to ``bold`` are
literal markup and are never escaped; values passed to ``escape``, ``code``
and ``block`` always are.
"""

import html
import re
from typing import Optional

# Characters Telegram MarkdownV2 treats as syntax, plus the escape itself.
_MARKDOWN_SPECIAL = re.compile(r"([\\_*\[\]()~`>#+\-=|{}.!])")
# Inside pre-formatted blocks only these need escaping.
_MARKDOWN_PRE_SPECIAL = re.compile(r"([\\`])")


class MessageStyle:
    """Plain text: no parse mode, nothing to escape."""

    name = "plain"
    parse_mode: Optional[str] = None

    def escape(self, text: str) -> str:
        return text

    def bold(self, label: str) -> str:
        return label

    def code(self, value: str) -> str:
        return self.escape(value)

    def block(self, text: str, language: Optional[str] = None) -> str:
        return text


class MarkdownV2Style(MessageStyle):
    """Telegram MarkdownV2."""

    name = "markdown"
    parse_mode = "MarkdownV2"

    def escape(self, text: str) -> str:
        return _MARKDOWN_SPECIAL.sub(r"\\\1", text)

    def bold(self, label: str) -> str:
        return f"*{label}*"

    def code(self, value: str) -> str:
        return f"`{self.escape(value)}`"

    def block(self, text: str, language: Optional[str] = None) -> str:
        body = _MARKDOWN_PRE_SPECIAL.sub(r"\\\1", text)
        return f"```{language or ''}\n{body}\n```"


class HtmlStyle(MessageStyle):
    """Telegram HTML."""

    name = "html"
    parse_mode = "HTML"

    def escape(self, text: str) -> str:
        return html.escape(text, quote=False)

    def bold(self, label: str) -> str:
        return f"<b>{label}</b>"

    def code(self, value: str) -> str:
        return f"<code>{self.escape(value)}</code>"

    def block(self, text: str, language: Optional[str] = None) -> str:
        if language:
            return f'<pre><code class="language-{language}">{self.escape(text)}</code></pre>'
        return f"<pre>{self.escape(text)}</pre>"


PLAIN = MessageStyle()
MARKDOWN_V2 = MarkdownV2Style()
HTML = HtmlStyle()

STYLES: dict[str, MessageStyle] = {style.name: style for style in (MARKDOWN_V2, HTML, PLAIN)}


def get_style(name: str) -> MessageStyle:
    """Return the style registered under ``name``."""
    try:
        return STYLES[name]
    except KeyError:
        raise ValueError(
            f"Unknown message style: {name}. Expected one of: {', '.join(sorted(STYLES))}"
        ) from None
