# dronelink/runtime/state.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dronelink.protocol.reply import decode_text
from dronelink.protocol.telemetry import parse_state


@dataclass(frozen=True)
class LinkStatus:
    """
    A snapshot of the link status, safe to share across threads.
    """
    connected: bool
    busy: bool
    queued: int
    keepalive: bool
    in_flight: Optional[str] = None


class StateCache:
    """
    Last-known telemetry state. Every datagram fully replaces the snapshot;
    there is no history and no merging.
    """

    def __init__(self, *, verbose: bool = False, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self._verbose = bool(verbose)

    @property
    def verbose(self) -> bool:
        return self._verbose

    def set_verbose(self, enabled: bool) -> None:
        self._verbose = bool(enabled)
        self._log.info("TELEMETRY_VERBOSE %s", "enabled" if self._verbose else "disabled")

    def on_datagram(self, data: bytes, addr: Any = None, received_at: Optional[float] = None) -> None:
        text = decode_text(data)
        state = parse_state(text)
        with self._lock:
            self._data = state
        if self._verbose:
            self._log.info("DRONE_STATE %s", text.strip())

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)
