"""BIP-340 Schnorr signing of event ids over secp256k1.

Nostr relays verify ``sig`` as a BIP-340 signature of the 32 raw id bytes under
the x-only ``pubkey``. Plain ECDSA (r || s) does not verify there even though it
uses the same curve, so everything here goes through ``coincurve``'s schnorrsig
bindings.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Optional

from coincurve import PrivateKey, PublicKeyXOnly

from .errors import KeyDecodeError, SigningError
from .event import Event

logger = logging.getLogger(__name__)

KEY_BYTES = 32
SIG_BYTES = 64

_HEX = re.compile(r"^(?:[0-9a-fA-F]{2})*\Z")


def _decode_hex(value: str, expected_len: int, what: str) -> bytes:
    # fromhex() tolerates embedded whitespace; keys and ids must be bare hex
    if not isinstance(value, str) or not _HEX.match(value):
        raise ValueError(f"{what} is not valid hex")
    if len(value) != expected_len * 2:
        raise ValueError(f"{what} must be {expected_len} bytes, got {len(value) // 2}")
    return bytes.fromhex(value)


class Signer:
    """Holds one private key in process memory and signs event ids with it."""

    def __init__(self, secret: bytes) -> None:
        if len(secret) != KEY_BYTES:
            raise KeyDecodeError(f"private key must be {KEY_BYTES} bytes, got {len(secret)}")
        try:
            self._key = PrivateKey(secret)
        except ValueError as e:
            # zero or >= curve order
            raise KeyDecodeError("private key is out of range for secp256k1") from e
        # compressed SEC1 point minus its parity byte is the BIP-340 x-only key
        self._public_key_hex = self._key.public_key.format(compressed=True)[1:].hex()

    @classmethod
    def from_hex(cls, privkey_hex: str) -> "Signer":
        try:
            secret = _decode_hex(privkey_hex, KEY_BYTES, "private key")
        except ValueError as e:
            # never echo the key itself
            raise KeyDecodeError(str(e)) from None
        return cls(secret)

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    def __repr__(self) -> str:
        return f"Signer(pubkey={self._public_key_hex})"

    def sign(self, event_id: str, aux_randomness: Optional[bytes] = None) -> str:
        """Sign the raw bytes of ``event_id``; returns 128 lowercase hex chars.

        ``aux_randomness`` defaults to 32 fresh random bytes as BIP-340 recommends.
        Pass a fixed value to get reproducible signatures.
        """
        try:
            message = _decode_hex(event_id, 32, "event id")
        except ValueError as e:
            raise SigningError(str(e)) from e
        if aux_randomness is None:
            aux_randomness = os.urandom(32)
        try:
            sig = self._key.sign_schnorr(message, aux_randomness)
        except Exception as e:  # cffi/libsecp256k1 failures surface as assorted types
            raise SigningError(f"schnorr signing failed: {e}") from e
        if len(sig) != SIG_BYTES:
            raise SigningError(f"unexpected signature length {len(sig)}")
        return sig.hex()


def sign_event(event: Event, signer: Signer, aux_randomness: Optional[bytes] = None) -> Event:
    """Return a copy of ``event`` carrying a signature over its id."""
    signed = event.with_signature(signer.sign(event.id, aux_randomness))
    logger.debug("Event %s signed", signed.id)
    return signed


def verify_signature(pubkey_hex: str, event_id: str, sig_hex: str) -> bool:
    """Check a BIP-340 signature; malformed input verifies as False."""
    try:
        pub = _decode_hex(pubkey_hex, 32, "public key")
        msg = _decode_hex(event_id, 32, "event id")
        sig = _decode_hex(sig_hex, SIG_BYTES, "signature")
        return bool(PublicKeyXOnly(pub).verify(sig, msg))
    except ValueError:
        return False
