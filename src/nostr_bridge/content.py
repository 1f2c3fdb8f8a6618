"""Turn a raw Discord message into the plain text published as note content."""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Pattern

logger = logging.getLogger(__name__)

# -----------------------------
# Mention markers
# -----------------------------
CHANNEL_MENTION = re.compile(r"<#[0-9]+>")
USER_MENTION = re.compile(r"<@!?[0-9]+>")     # <@id> and legacy nickname form <@!id>
ROLE_MENTION = re.compile(r"<@&[0-9]+>")

MENTION_PATTERNS: List[Pattern[str]] = [CHANNEL_MENTION, USER_MENTION, ROLE_MENTION]

# Some clients hand us attachment URLs with the ampersand still JSON-escaped.
_ESCAPED_AMPERSAND = "\\u0026"


def strip_mentions(text: str) -> str:
    """Delete every channel, user and role marker; surrounding text is untouched."""
    for pattern in MENTION_PATTERNS:
        text = pattern.sub("", text)
    return text


def decode_attachment_url(url: str) -> str:
    return url.replace(_ESCAPED_AMPERSAND, "&")


def prepare_content(text: str, attachment_urls: Iterable[str] = ()) -> str:
    """Strip mention markers and append attachment URLs, one per line, in order."""
    content = strip_mentions(text or "")
    for url in attachment_urls:
        content += "\n" + decode_attachment_url(url)
    logger.debug("Prepared content after removing mentions: %r", content)
    return content
