"""Discord → Nostr bridge.

Watches one Discord channel and republishes every message as a signed
kind-1 note on a Nostr relay.

Typical usage
-------------
python -m nostr_bridge --config config.yml

or, from the provided launcher:

python scripts/run_bridge.py --config config.yml --status
"""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    BridgeError,
    ConfigError,
    KeyDecodeError,
    RelayConnectionError,
    SerializationError,
    SigningError,
)
from .event import Event, build_event, compute_event_id, serialize_for_id  # noqa: E402

__all__ = [
    "__version__",
    "get_version",
    "BridgeError",
    "ConfigError",
    "Event",
    "KeyDecodeError",
    "RelayConnectionError",
    "SerializationError",
    "SigningError",
    "build_event",
    "compute_event_id",
    "serialize_for_id",
]


def get_version() -> str:
    """Return the package version."""
    return __version__
