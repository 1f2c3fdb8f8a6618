"""Per-message pipeline: filter, normalize, build, sign, publish.

One :class:`Bridge` is created at startup and shared by every message task.
It only holds read-only configuration, the relay publisher (which guards its
own connection) and counters. Each call to :meth:`Bridge.handle` builds its own
event and never touches another message's state.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import BridgeConfig
from .content import prepare_content
from .errors import KeyDecodeError, RelayConnectionError, SerializationError, SigningError
from .event import Event, build_event
from .relay import RelayPublisher, RelayResponse
from .signer import Signer, sign_event

logger = logging.getLogger(__name__)


@dataclass
class InboundMessage:
    """The parts of a chat message the bridge cares about."""
    author_id: str
    channel_id: str
    content: str
    attachment_urls: List[str] = field(default_factory=list)


@dataclass
class BridgeStats:
    received: int = 0
    ignored: int = 0
    published: int = 0
    rejected: int = 0
    dropped: Counter = field(default_factory=Counter)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "received": self.received,
            "ignored": self.ignored,
            "published": self.published,
            "rejected": self.rejected,
            "dropped": dict(self.dropped),
        }


class Bridge:
    """Forward messages from the watched channel to the relay as signed notes."""

    def __init__(self, config: BridgeConfig, publisher: RelayPublisher) -> None:
        self.config = config
        self.publisher = publisher
        self.channel_id = config.discord.channel_id
        self.pubkey = config.nostr.pubkey
        self.stats = BridgeStats()
        self._signer: Optional[Signer] = None

    # --------- keys ----------
    def _get_signer(self) -> Signer:
        # Decoded on first use; a bad key fails every message, not startup.
        if self._signer is None:
            self._signer = Signer.from_hex(self.config.nostr.privkey.get_secret_value())
        return self._signer

    def check_keys(self) -> bool:
        """Log whether the private key decodes and matches the configured pubkey."""
        try:
            signer = self._get_signer()
        except KeyDecodeError as e:
            logger.error("Configured private key is unusable, every message will be dropped: %s", e)
            return False
        if signer.public_key_hex != self.pubkey:
            logger.warning(
                "Configured pubkey %s does not match the private key (derived %s); "
                "relays will reject the signatures",
                self.pubkey,
                signer.public_key_hex,
            )
            return False
        return True

    # --------- filtering ----------
    def should_forward(self, message: InboundMessage, own_id: Optional[str]) -> bool:
        if own_id is not None and message.author_id == own_id:
            return False
        return message.channel_id == self.channel_id

    # --------- pipeline ----------
    def make_event(self, message: InboundMessage) -> Event:
        """Run normalizer, serializer/id and signer; raises pipeline errors."""
        content = prepare_content(message.content, message.attachment_urls)
        event = build_event(content, self.pubkey)
        return sign_event(event, self._get_signer())

    async def handle(self, message: InboundMessage, own_id: Optional[str] = None) -> Optional[RelayResponse]:
        """Process one inbound message. Never raises for pipeline failures."""
        self.stats.received += 1
        if not self.should_forward(message, own_id):
            self.stats.ignored += 1
            return None

        stage = "build"
        try:
            event = self.make_event(message)
            stage = "relay"
            response = await self.publisher.publish(event)
        except SerializationError as e:
            self._drop("serialize", e)
            return None
        except KeyDecodeError as e:
            self._drop("key", e)
            return None
        except SigningError as e:
            self._drop("sign", e)
            return None
        except RelayConnectionError as e:
            self._drop("relay", e)
            return None
        except Exception:
            logger.exception("Unexpected error at stage %s, message from %s dropped", stage, message.author_id)
            self.stats.dropped["unexpected"] += 1
            return None

        self.stats.published += 1
        if response.accepted is False:
            self.stats.rejected += 1
        return response

    def _drop(self, stage: str, error: Exception) -> None:
        self.stats.dropped[stage] += 1
        logger.error("Message dropped at stage %s: %s", stage, error)
