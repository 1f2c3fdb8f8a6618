"""discord.py client that feeds channel messages into the bridge."""
from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from .bridge import Bridge, InboundMessage

logger = logging.getLogger(__name__)


def to_inbound(message: Any) -> InboundMessage:
    """Extract author, channel, text and attachment URLs from a ``discord.Message``."""
    return InboundMessage(
        author_id=str(message.author.id),
        channel_id=str(message.channel.id),
        content=message.content or "",
        attachment_urls=[a.url for a in (message.attachments or [])],
    )


class BridgeClient(discord.Client):
    """Discord gateway client; discord.py runs each ``on_message`` as its own task."""

    def __init__(self, bridge: Bridge, **kwargs: Any) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents, **kwargs)
        self.bridge = bridge

    @property
    def own_id(self) -> Optional[str]:
        return str(self.user.id) if self.user is not None else None

    async def on_ready(self) -> None:
        logger.info("Logged in to Discord as %s, watching channel %s", self.user, self.bridge.channel_id)

    async def on_message(self, message: discord.Message) -> None:
        inbound = to_inbound(message)
        logger.debug("Message %s from %s in channel %s", message.id, inbound.author_id, inbound.channel_id)
        await self.bridge.handle(inbound, own_id=self.own_id)
