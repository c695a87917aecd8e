# dronelink/protocol/timeouts.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DEFAULT_TIMEOUT_S = 5.0

DEFAULT_VERB_TIMEOUTS_S: Mapping[str, float] = MappingProxyType({
    "command": 3.0,
    "takeoff": 7.0,
    "land": 7.0,
    "up": 7.0,
    "down": 7.0,
    "left": 5.0,
    "right": 5.0,
    "forward": 5.0,
    "back": 5.0,
    "ccw": 5.0,
    "cw": 5.0,
    "rc": 2.0,
    "battery?": 3.0,
})


def base_verb(command: str) -> str:
    """First whitespace-delimited token of a command ('' for a blank command)."""
    parts = command.split(maxsplit=1)
    return parts[0] if parts else ""


@dataclass(frozen=True)
class TimeoutPolicy:
    """Read-only base verb -> timeout table with a fallback default."""

    table: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_VERB_TIMEOUTS_S))
    default_s: float = DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        if self.default_s <= 0:
            raise ValueError(f"default timeout must be positive, got {self.default_s!r}")
        for verb, t in self.table.items():
            if t <= 0:
                raise ValueError(f"timeout for {verb!r} must be positive, got {t!r}")
        object.__setattr__(self, "table", MappingProxyType(dict(self.table)))

    def timeout_for(self, command: str) -> float:
        return float(self.table.get(base_verb(command), self.default_s))
