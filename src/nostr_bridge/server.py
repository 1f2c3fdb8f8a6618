"""Optional FastAPI status endpoint for a running bridge."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from . import __version__
from .bridge import Bridge
from .config import BridgeConfig


def create_app(bridge: Bridge, cfg: BridgeConfig) -> FastAPI:
    app = FastAPI(title="Nostr Bridge Status", version=__version__)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "relay_url": bridge.publisher.url,
            "relay_connected": bridge.publisher.connected,
            "channel_id": bridge.channel_id,
            "pubkey": bridge.pubkey,
            "stats": bridge.stats.as_dict(),
        }

    @app.get("/config")
    def get_config() -> JSONResponse:
        # token and privkey are SecretStr and dump masked
        return JSONResponse(cfg.redacted())

    return app
