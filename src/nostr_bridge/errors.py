"""Exception hierarchy for the bridge pipeline.

Every pipeline stage raises a subclass of :class:`BridgeError` so the message
handler can drop a single message without taking the process down. Only
:class:`ConfigError` is meant to be fatal, and only at startup.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigError(BridgeError, RuntimeError):
    """Configuration file missing, unreadable or invalid."""


class SerializationError(BridgeError):
    """An event field cannot be represented in the canonical JSON form."""


class KeyDecodeError(BridgeError):
    """The configured private key is not 32 bytes of valid hex."""


class SigningError(BridgeError):
    """The Schnorr primitive refused to sign (or the event is not signable)."""


class RelayConnectionError(BridgeError, ConnectionError):
    """Connecting to, writing to or reading from the relay failed."""
