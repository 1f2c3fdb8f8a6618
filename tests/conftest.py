"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# BIP-340 test vector 0: secret key 3, its x-only public key
PRIVKEY_HEX = "00" * 31 + "03"
PUBKEY_HEX = "f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9"
# x coordinate of the generator point, i.e. the public key of secret 1
OTHER_PUBKEY_HEX = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"

CHANNEL_ID = "1067205302946111602"


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def config_dict() -> Dict[str, Any]:
    return {
        "discord": {"token": "discord-token", "channel_id": CHANNEL_ID},
        "nostr": {
            "pubkey": PUBKEY_HEX,
            "privkey": PRIVKEY_HEX,
            "relay_url": "wss://relay.example",
        },
    }


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a dict as YAML into tmp_path and return the file path."""
    def _write(data: Dict[str, Any], name: str = "config.yml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def bridge_config(config_dict):
    from nostr_bridge.config import BridgeConfig
    return BridgeConfig.model_validate(config_dict)


@pytest.fixture(scope="function", autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run without leftover bridge configuration in the environment."""
    import os
    monkeypatch.delenv("NOSTR_BRIDGE_CONFIG", raising=False)
    for var in list(os.environ):
        if var.startswith("NOSTR_BRIDGE__"):
            monkeypatch.delenv(var, raising=False)
    yield
