"""Configuration loading for the bridge.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable NOSTR_BRIDGE_CONFIG
3. Fallback to "config.yml"

It also supports overrides from environment variables with prefix
``NOSTR_BRIDGE__`` (e.g., NOSTR_BRIDGE__NOSTR__RELAY_URL=wss://relay.example).
The merged dict is validated into a :class:`BridgeConfig`; any problem is a
:class:`~nostr_bridge.errors.ConfigError`, which is fatal at startup.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigError

ENV_PATH = "NOSTR_BRIDGE_CONFIG"
ENV_PREFIX = "NOSTR_BRIDGE__"
DEFAULT_PATH = "config.yml"

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")


# -----------------------------
# Pydantic models
# -----------------------------
class DiscordSettings(BaseModel):
    token: SecretStr
    channel_id: str = Field(..., min_length=1)

    @field_validator("channel_id", mode="before")
    @classmethod
    def _channel_as_str(cls, v: Any) -> Any:
        # YAML reads bare snowflakes as ints
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("token must not be empty")
        return v


class NostrSettings(BaseModel):
    pubkey: str
    # Shape is checked when the key is decoded for signing, not here.
    privkey: SecretStr
    relay_url: str

    @field_validator("pubkey")
    @classmethod
    def _pubkey_hex(cls, v: str) -> str:
        v = v.strip()
        if not _HEX64.match(v):
            raise ValueError("pubkey must be 64 hex characters")
        return v.lower()

    @field_validator("privkey")
    @classmethod
    def _privkey_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("privkey must not be empty")
        return v

    @field_validator("relay_url")
    @classmethod
    def _relay_scheme(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("ws://", "wss://")):
            raise ValueError("relay_url must start with ws:// or wss://")
        return v


class RelaySettings(BaseModel):
    open_timeout: Optional[float] = Field(default=10.0, gt=0)
    response_timeout: Optional[float] = Field(default=10.0, gt=0)


class StatusSettings(BaseModel):
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class LoggingSettings(BaseModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _level_upper(cls, v: str) -> str:
        return str(v).upper()


class BridgeConfig(BaseModel):
    discord: DiscordSettings
    nostr: NostrSettings
    relay: RelaySettings = Field(default_factory=RelaySettings)
    status: StatusSettings = Field(default_factory=StatusSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def redacted(self) -> Dict[str, Any]:
        """JSON-safe dump with secrets masked."""
        return self.model_dump(mode="json")


# -----------------------------
# Loading
# -----------------------------
def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix NOSTR_BRIDGE__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., NOSTR_BRIDGE__NOSTR__PRIVKEY -> cfg["nostr"]["privkey"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        leaf = parts[-1]
        # Keys and ids are hex/digit strings; leave them alone
        if leaf in {"pubkey", "privkey", "token", "channel_id", "relay_url"}:
            sub[leaf] = value
        elif value.lower() in {"true", "false"}:
            sub[leaf] = value.lower() == "true"
        else:
            try:
                if "." in value:
                    sub[leaf] = float(value)
                else:
                    sub[leaf] = int(value)
            except ValueError:
                sub[leaf] = value
    return cfg


def _read_yaml(path_obj: Path) -> Dict[str, Any]:
    try:
        with path_obj.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path_obj}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(cfg, dict):
        raise ConfigError(f"Invalid config format in {path_obj}, expected a mapping.")
    return cfg


def load_config(path: Union[str, Path, None] = None) -> BridgeConfig:
    """Load and validate the bridge configuration.

    Parameters
    ----------
    path : str | Path | None
        Optional path to a YAML file. If not provided, the environment
        variable ``NOSTR_BRIDGE_CONFIG`` is consulted, then ``config.yml``.
        A missing file is tolerated only when the environment overrides
        supply every mandatory field.

    Returns
    -------
    BridgeConfig

    Raises
    ------
    ConfigError
        If the file cannot be read or parsed, or a mandatory field is
        missing or invalid.
    """
    if path is None:
        path = os.environ.get(ENV_PATH, DEFAULT_PATH)

    path_obj = Path(path)
    cfg: Dict[str, Any] = _read_yaml(path_obj) if path_obj.exists() else {}
    cfg = _apply_env_overrides(cfg)

    try:
        return BridgeConfig.model_validate(cfg)
    except ValidationError as e:
        where = f" (file {path_obj})" if path_obj.exists() else f" (no file at {path_obj})"
        raise ConfigError(f"Invalid configuration{where}:\n{e}") from e
