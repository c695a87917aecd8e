# dronelink/protocol/keepalive.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Optional, Protocol as TypingProtocol, TYPE_CHECKING

if TYPE_CHECKING:
    from dronelink.protocol._internal.pending_command import PendingCommand

DEFAULT_KEEPALIVE_COMMAND = "rc 0 0 0 0"
DEFAULT_KEEPALIVE_PERIOD_S = 8.0


class CommandSubmitter(TypingProtocol):
    """Anything that queues a command and returns its pending handle."""
    def submit(self, command: str) -> "PendingCommand": ...


class KeepAliveDriver:
    """
    Periodically queues a neutral command so the peer's own idle failsafe
    never fires. The command goes through the normal dispatcher queue.
    """

    def __init__(
        self,
        dispatcher: CommandSubmitter,
        *,
        period_s: float = DEFAULT_KEEPALIVE_PERIOD_S,
        command: str = DEFAULT_KEEPALIVE_COMMAND,
        logger: Optional[logging.Logger] = None,
    ):
        if period_s <= 0:
            raise ValueError(f"keep-alive period must be positive, got {period_s!r}")
        self._dispatcher = dispatcher
        self.period_s = float(period_s)
        self.command = command
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None

    def start(self) -> None:
        """Start the period timer; if already running, restart it."""
        with self._lock:
            self._stop_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="keepalive",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        self._log.info("KEEPALIVE_STARTED period_s=%.1f cmd=%s", self.period_s, self.command)

    def stop(self) -> None:
        with self._lock:
            if self._thread is None:
                return
            self._stop_locked()
        self._log.info("KEEPALIVE_STOPPED")

    def _stop_locked(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        self._thread = None
        self._stop_event = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, stop_event: threading.Event) -> None:
        # first tick one full period after start
        while not stop_event.wait(self.period_s):
            self.tick()

    def tick(self) -> None:
        """Queue one keep-alive command. Never raises."""
        try:
            pending = self._dispatcher.submit(self.command)
        except Exception:
            self._log.exception("KEEPALIVE_SUBMIT_FAILED cmd=%s", self.command)
            return
        pending.add_done_callback(self._on_done)

    def _on_done(self, fut: Future) -> None:
        if fut.cancelled():
            return
        err = fut.exception()
        if err is not None:
            self._log.warning("KEEPALIVE_FAILED cmd=%s error=%s", self.command, err)
