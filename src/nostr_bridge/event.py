"""Nostr text-note model with canonical serialization and id derivation.

The id of an event is the sha256 of the compact JSON array::

    [0, pubkey, created_at, kind, tags, content]

Field order is fixed by the protocol and every implementation must reproduce
the exact same bytes, otherwise relays and clients compute a different id and
reject the signature. The :class:`Event` dataclass is frozen and derives its
id on construction, so an id can never go stale.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from .errors import SerializationError

logger = logging.getLogger(__name__)

KIND_TEXT_NOTE = 1

Tag = Tuple[str, ...]
Tags = Tuple[Tag, ...]


# -----------------------------
# Canonical form
# -----------------------------
def _normalize_tags(tags: Optional[Iterable[Sequence[str]]]) -> Tags:
    if tags is None:
        return ()
    if isinstance(tags, (str, bytes)):
        raise SerializationError("tags must be a list of tag entries, got a string")
    out = []
    for entry in tags:
        # A flat list of strings was an early mistake; each entry is itself a list.
        if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence):
            raise SerializationError(f"tag entry must be a list of strings, got {entry!r}")
        if not all(isinstance(v, str) for v in entry):
            raise SerializationError(f"tag values must be strings, got {list(entry)!r}")
        out.append(tuple(entry))
    return tuple(out)


def serialize_for_id(pubkey: str, created_at: int, kind: int, tags: Tags, content: str) -> bytes:
    """Return the exact UTF-8 bytes the event id is hashed over."""
    if not isinstance(created_at, int) or isinstance(created_at, bool):
        raise SerializationError(f"created_at must be an int, got {type(created_at).__name__}")
    payload = [0, pubkey, created_at, kind, [list(t) for t in tags], content]
    try:
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        data = text.encode("utf-8")
    except (TypeError, ValueError) as e:
        # UnicodeEncodeError (lone surrogates) is a ValueError subclass
        raise SerializationError(f"event cannot be serialized: {e}") from e
    logger.debug("Serialized event for id: %s", text)
    return data


def compute_event_id(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


# -----------------------------
# Event
# -----------------------------
@dataclass(frozen=True)
class Event:
    """A kind-1 note. ``id`` is computed from the other fields; ``sig`` is set by signing."""

    pubkey: str
    created_at: int
    content: str
    kind: int = KIND_TEXT_NOTE
    tags: Tags = ()
    sig: str = ""
    id: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _normalize_tags(self.tags))
        data = serialize_for_id(self.pubkey, self.created_at, self.kind, self.tags, self.content)
        object.__setattr__(self, "id", compute_event_id(data))

    @property
    def signed(self) -> bool:
        return bool(self.sig)

    def with_signature(self, sig: str) -> "Event":
        # replace() re-runs __post_init__, recomputing the same id
        return replace(self, sig=sig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_message(self) -> str:
        """Wire envelope ``["EVENT", {...}]`` as a compact JSON text frame."""
        return json.dumps(["EVENT", self.to_dict()], separators=(",", ":"), ensure_ascii=False)


def build_event(
    content: str,
    pubkey: str,
    *,
    created_at: Optional[int] = None,
    tags: Optional[Iterable[Sequence[str]]] = None,
) -> Event:
    """Create an unsigned text note stamped with the current wall-clock time."""
    if created_at is None:
        created_at = int(time.time())
    event = Event(pubkey=pubkey, created_at=created_at, content=content, tags=_normalize_tags(tags))
    logger.debug("Nostr event id computed: %s", event.id)
    return event
