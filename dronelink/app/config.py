from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from dronelink.core.errors import ConfigError
from dronelink.protocol.keepalive import DEFAULT_KEEPALIVE_COMMAND, DEFAULT_KEEPALIVE_PERIOD_S
from dronelink.protocol.reply import ERROR_MARKER
from dronelink.protocol.timeouts import DEFAULT_TIMEOUT_S, DEFAULT_VERB_TIMEOUTS_S, TimeoutPolicy

DEBUG_ENV_VAR = "DRONE_DEBUG"

DEFAULT_QUERY_VERBS: Tuple[str, ...] = (
    "battery?", "speed?", "time?", "height?", "temp?", "attitude?",
    "baro?", "acceleration?", "tof?", "wifi?", "sdk?", "sn?",
)


@dataclass(frozen=True)
class DroneLinkConfig:
    host: str = "192.168.10.1"
    command_port: int = 8889
    reply_port: int = 9000
    state_port: int = 8890
    bind_host: str = ""
    transport_driver: str = "udp"
    default_timeout_s: float = DEFAULT_TIMEOUT_S
    timeouts: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_VERB_TIMEOUTS_S))
    keepalive_period_s: float = DEFAULT_KEEPALIVE_PERIOD_S
    keepalive_command: str = DEFAULT_KEEPALIVE_COMMAND
    error_marker: str = ERROR_MARKER
    query_verbs: Tuple[str, ...] = DEFAULT_QUERY_VERBS
    recv_bufsize: int = 1518
    verbose_telemetry: bool = False

    @property
    def command_address(self) -> Tuple[str, int]:
        return (self.host, self.command_port)

    def timeout_policy(self) -> TimeoutPolicy:
        return TimeoutPolicy(table=self.timeouts, default_s=self.default_timeout_s)


def _env_flag(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def config_from_mapping(doc: Mapping[str, Any], *, env: Optional[Mapping[str, str]] = None) -> DroneLinkConfig:
    """
    Build a config from a mapping of overrides. Unlisted keys keep their defaults;
    'timeouts' entries are merged over the default verb table.
    """
    if not isinstance(doc, Mapping):
        raise ConfigError("Link configuration must be a mapping.", details={"type": type(doc).__name__})

    known = {f.name for f in dataclasses.fields(DroneLinkConfig)}
    unknown = sorted(set(doc) - known)
    if unknown:
        raise ConfigError(
            f"Unknown configuration key(s): {', '.join(unknown)}.",
            hint=f"Valid keys: {sorted(known)}",
            details={"unknown": unknown},
        )

    kwargs: Dict[str, Any] = dict(doc)
    if "timeouts" in kwargs:
        timeouts = kwargs["timeouts"] or {}
        if not isinstance(timeouts, Mapping):
            raise ConfigError("'timeouts' must be a mapping of verb -> seconds.")
        merged = dict(DEFAULT_VERB_TIMEOUTS_S)
        try:
            merged.update({str(k): float(v) for k, v in timeouts.items()})
        except (TypeError, ValueError) as e:
            raise ConfigError("Invalid timeout value in 'timeouts'.", hint=str(e)) from None
        kwargs["timeouts"] = merged
    if "query_verbs" in kwargs:
        kwargs["query_verbs"] = tuple(str(v) for v in kwargs["query_verbs"] or ())

    env = os.environ if env is None else env
    debug = _env_flag(env.get(DEBUG_ENV_VAR))
    if debug is not None:
        kwargs["verbose_telemetry"] = debug

    try:
        cfg = DroneLinkConfig(**kwargs)
        cfg.timeout_policy()
    except (TypeError, ValueError) as e:
        raise ConfigError("Invalid link configuration.", hint=str(e)) from None

    if cfg.keepalive_period_s <= 0:
        raise ConfigError(
            "Keep-alive period must be positive.",
            details={"keepalive_period_s": cfg.keepalive_period_s},
        )
    return cfg


def load_config(path: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> DroneLinkConfig:
    """
    Load link configuration from a YAML file (None -> the packaged link.yml).
    DRONE_DEBUG from env (default: os.environ) overrides verbose_telemetry.
    """
    path = default_config_path() if path is None else Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}", details={"path": str(path)})

    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}.", hint=str(e), details={"path": str(path)}) from None

    return config_from_mapping(doc, env=env)


def default_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "metadata" / "link.yml"
