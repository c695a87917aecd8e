# dronelink/protocol/_internal/pending_command.py
from __future__ import annotations

import itertools
import threading
import time
from concurrent.futures import Future, InvalidStateError
from typing import Any, Callable, Optional

from dronelink.protocol.errors import ProtocolError
from dronelink.protocol.reply import CommandResult
from dronelink.protocol.timeouts import base_verb

_ids = itertools.count(1)


class PendingCommand:
    """Holds a Future for one queued command."""

    def __init__(self, command: str, timeout_s: float):
        self.request_id = next(_ids)
        self.command = str(command)
        self.verb = base_verb(self.command)
        self.timeout_s = float(timeout_s)
        self.created_at = time.monotonic()
        self.sent_at: Optional[float] = None
        self.result_value: Optional[str] = None
        self.future: Future = Future()
        self._timer: Optional[threading.Timer] = None

    def __repr__(self) -> str:
        return f"PendingCommand(id={self.request_id}, command={self.command!r})"

    def add_done_callback(self, cb: Callable[[Future], Any]) -> Any:
        """Forward callback registration to the underlying Future."""
        return self.future.add_done_callback(cb)

    def result(self, timeout: Optional[float] = None) -> CommandResult:
        """Block until settled; raises the ProtocolError the command failed with."""
        return self.future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout=timeout)

    def done(self) -> bool:
        return self.future.done()

    # ---------------- timer ----------------
    def arm_timer(self, on_expire: Callable[["PendingCommand"], None]) -> None:
        timer = threading.Timer(self.timeout_s, on_expire, args=(self,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ---------------- settlement ----------------
    def set_result(self, response: str) -> bool:
        """Settle as success. Returns False if already settled."""
        if self.future.done():
            return False
        self.cancel_timer()
        try:
            self.future.set_result(
                CommandResult(command=self.command, response=response, result=self.result_value)
            )
        except InvalidStateError:
            # cancelled by the caller after the check above
            return False
        return True

    def set_error(self, error: ProtocolError) -> bool:
        """Settle as failure. Returns False if already settled."""
        if self.future.done():
            return False
        self.cancel_timer()
        try:
            self.future.set_exception(error)
        except InvalidStateError:
            return False
        return True
