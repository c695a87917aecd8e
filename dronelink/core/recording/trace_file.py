# dronelink/core/recording/trace_file.py
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from queue import Queue
from typing import Any, Dict, List, Optional

_CLOSE = object()


class JsonLinesTrace:
    """
    Append-only JSON-lines file fed from a background thread, so the
    dispatcher lock is never held across disk I/O.

    Records queued before close() are always written.
    """

    def __init__(self, path: Path, *, max_batch: int = 64, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._max_batch = max(1, int(max_batch))
        self._log = logger or logging.getLogger(__name__)

        self._queue: "Queue[Any]" = Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="cmd-trace", daemon=True)
        self._thread.start()

    def append(self, record: Dict[str, Any]) -> None:
        if not self._closed:
            self._queue.put(record)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSE)
        self._thread.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            batch: List[Dict[str, Any]] = []
            done = item is _CLOSE
            if not done:
                batch.append(item)
            # drain whatever else is already waiting
            while not done and len(batch) < self._max_batch and not self._queue.empty():
                item = self._queue.get()
                if item is _CLOSE:
                    done = True
                else:
                    batch.append(item)
            if batch:
                self._write(batch)
            if done:
                return

    def _write(self, batch: List[Dict[str, Any]]) -> None:
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                for record in batch:
                    f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except (OSError, TypeError, ValueError):
            self._log.exception("CMD_TRACE_WRITE_FAILED path=%s records=%d", self.path, len(batch))
