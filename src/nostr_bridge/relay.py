"""Publish signed events to a Nostr relay over one long-lived WebSocket.

The connection is owned by a :class:`RelayPublisher` and shared by all
concurrent message handlers. A WebSocket is a single ordered stream, so the
write of an ``EVENT`` frame and the read of the relay's reply happen under one
lock. Replies are matched on the event id carried by ``OK``; unsolicited
frames (``AUTH`` challenges, stray ``NOTICE``) and ``OK`` for other ids are
logged and skipped so they cannot shift later replies.

When anything goes wrong on the transport the connection is closed and
forgotten, and the error is raised to the caller. The next ``publish`` opens a
fresh connection. A socket the relay already closed is replaced before
writing. There is no retry or queue here.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from .errors import RelayConnectionError, SigningError
from .event import Event

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (WebSocketException, OSError, asyncio.TimeoutError)


@dataclass
class RelayResponse:
    """A frame read back after an EVENT.

    ``accepted`` is only set for NIP-20 ``OK`` replies; ``None`` means the
    relay answered with something else (NOTICE, unparseable text...).
    """
    raw: str
    kind: Optional[str] = None
    accepted: Optional[bool] = None
    message: str = ""
    event_id: Optional[str] = None


def parse_response(raw: Any) -> RelayResponse:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except ValueError:
        return RelayResponse(raw=raw)
    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        return RelayResponse(raw=raw)
    kind = data[0]
    if kind == "OK" and len(data) >= 3:
        message = str(data[3]) if len(data) > 3 else ""
        return RelayResponse(
            raw=raw,
            kind=kind,
            accepted=data[2] is True,
            message=message,
            event_id=str(data[1]),
        )
    message = str(data[1]) if len(data) > 1 else ""
    return RelayResponse(raw=raw, kind=kind, message=message)


def _is_open(ws: Any) -> bool:
    """False once the relay has started or finished the close handshake."""
    if getattr(ws, "close_code", None) is not None:
        return False
    # legacy and asyncio connections both expose a State enum member
    state = getattr(ws, "state", None)
    return state is None or getattr(state, "name", "OPEN") == "OPEN"


class RelayPublisher:
    """Owns the relay connection; ``publish`` is safe to call from many tasks."""

    def __init__(
        self,
        url: str,
        *,
        open_timeout: Optional[float] = 10.0,
        response_timeout: Optional[float] = 10.0,
    ) -> None:
        self.url = url
        self.open_timeout = open_timeout
        self.response_timeout = response_timeout
        self._ws: Any = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._ws is not None and _is_open(self._ws)

    # --------- lifecycle ----------
    async def connect(self) -> None:
        """Open the connection if it is not already open."""
        async with self._lock:
            await self._ensure_connected()

    async def close(self) -> None:
        async with self._lock:
            await self._drop()

    async def _ensure_connected(self) -> Any:
        if self._ws is not None:
            if _is_open(self._ws):
                return self._ws
            logger.info("Relay connection %s was closed by the relay, reconnecting", self.url)
            await self._drop()
        try:
            self._ws = await websockets.connect(self.url, open_timeout=self.open_timeout)
        except _TRANSPORT_ERRORS as e:
            logger.error("Error connecting to Nostr relay %s: %s", self.url, e)
            raise RelayConnectionError(f"error connecting to relay {self.url}: {e}") from e
        logger.info("Connected to Nostr relay %s", self.url)
        return self._ws

    async def _drop(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except _TRANSPORT_ERRORS as e:
            logger.debug("Ignoring error while closing relay connection: %s", e)

    # --------- publishing ----------
    async def publish(self, event: Event) -> RelayResponse:
        """Send ``event`` and wait for the relay's ``OK`` for it.

        If the timeout expires after the relay sent only other frames, the last
        of them is returned as the reply and the connection is dropped so the
        next publish starts on a clean stream.
        """
        if not event.signed:
            raise SigningError(f"refusing to publish unsigned event {event.id}")
        frame = event.to_message()

        async with self._lock:
            ws = await self._ensure_connected()
            try:
                logger.debug("Sending event to relay: %s", frame)
                await ws.send(frame)
            except _TRANSPORT_ERRORS as e:
                await self._drop()
                raise RelayConnectionError(f"failed to send event {event.id}: {e}") from e
            except asyncio.CancelledError:
                await self._drop()
                raise

            others: List[RelayResponse] = []
            try:
                response = await asyncio.wait_for(
                    self._read_reply(ws, event, others), timeout=self.response_timeout
                )
            except asyncio.TimeoutError as e:
                await self._drop()
                if not others:
                    raise RelayConnectionError(f"no relay response for {event.id}: {e}") from e
                response = others[-1]
                logger.warning("No OK from relay for %s, using last %s frame", event.id, response.kind)
            except _TRANSPORT_ERRORS as e:
                await self._drop()
                raise RelayConnectionError(f"failed to read relay response for {event.id}: {e}") from e
            except asyncio.CancelledError:
                # the reply would otherwise be read by the next publish
                await self._drop()
                raise

        self._log_response(event, response)
        return response

    async def _read_reply(self, ws: Any, event: Event, others: List[RelayResponse]) -> RelayResponse:
        while True:
            response = parse_response(await ws.recv())
            if response.kind == "OK" and response.event_id == event.id:
                return response
            if response.kind == "OK":
                logger.warning("Relay OK for %s while waiting on %s, skipping", response.event_id, event.id)
            else:
                logger.info("Relay sent %s while waiting on %s: %r", response.kind, event.id, response.raw)
                others.append(response)

    def _log_response(self, event: Event, response: RelayResponse) -> None:
        if response.kind is None:
            logger.warning("Unparseable response from relay for %s: %r", event.id, response.raw)
        elif response.accepted is False:
            logger.warning("Relay rejected event %s: %s", event.id, response.message)
        elif response.accepted:
            logger.info("Relay accepted event %s %s", event.id, response.message)
        else:
            logger.info("Received %s from relay after %s: %s", response.kind, event.id, response.message)
