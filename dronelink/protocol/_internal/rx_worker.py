# dronelink/protocol/_internal/rx_worker.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from dronelink.transport.base import Address, DatagramTransport
from dronelink.transport.errors import TransportIOError

# (data, source, monotonic arrival time)
DatagramHandler = Callable[[bytes, Address, float], None]


class RxWorker(threading.Thread):
    """Thread that continuously reads datagrams from a transport and hands them to a handler."""

    def __init__(
        self,
        transport: DatagramTransport,
        handler: DatagramHandler,
        *,
        name: str = "rx-worker",
        bufsize: int = 1518,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(name=name, daemon=True)
        self.transport = transport
        self.handler = handler
        self.bufsize = int(bufsize)
        self._log = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._pump()
            except TransportIOError:
                if self._stop_event.is_set():
                    break
                self._log.exception("RX_WORKER_IO_ERROR name=%s", self.name)
                self._stop_event.wait(0.05)
            except Exception:
                self._log.exception("RX_WORKER_EXCEPTION name=%s", self.name)
                self._stop_event.wait(0.01)

    def _pump(self) -> None:
        item = self.transport.recv(self.bufsize)
        if item is None:
            return
        received_at = time.monotonic()
        data, addr = item
        self.handler(data, addr, received_at)

    def stop(self) -> None:
        self._stop_event.set()
