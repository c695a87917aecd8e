# dronelink/core/recording/command.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from dronelink.interfaces.command_sink import CommandEvent, CommandSink
from dronelink.core.recording.trace_file import JsonLinesTrace


@dataclass
class CommandTraceLogger(CommandSink):
    """
    CommandSink that logs every drone command event (send, ok, error,
    timeout, send_failed, cancelled) and, with file_path set, appends it
    to a JSON-lines trace.
    """
    logger: logging.Logger
    file_path: Optional[Path] = None

    def __post_init__(self) -> None:
        self._trace: Optional[JsonLinesTrace] = None
        if self.file_path is not None:
            self._trace = JsonLinesTrace(Path(self.file_path), logger=self.logger)
            self.file_path = self._trace.path

    def close(self) -> None:
        if self._trace is not None:
            self._trace.close()
            self._trace = None

    def on_command(self, event: CommandEvent) -> None:
        level = logging.WARNING if event.kind in ("timeout", "send_failed") else logging.DEBUG
        self.logger.log(level, "CMD_EVENT kind=%s cmd=%s id=%s", event.kind, event.name, event.request_id)
        if self._trace is None:
            return

        record: Dict[str, Any] = {
            "ts_utc": event.ts_utc or datetime.now(timezone.utc).isoformat(),
            "id": event.request_id,
            "cmd": event.name,
            "kind": event.kind,
        }
        if event.request_id is None:
            del record["id"]
        if event.payload:
            record.update(event.payload)
        self._trace.append(record)
