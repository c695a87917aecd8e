from __future__ import annotations

import logging
import queue
import time

from dronelink.protocol._internal.rx_worker import RxWorker
from dronelink.transport.errors import TransportIOError


class FakeTransport:
    def __init__(self):
        self.inbox: "queue.Queue[object]" = queue.Queue()
        self.calls = 0

    def recv(self, bufsize: int):
        self.calls += 1
        try:
            item = self.inbox.get(timeout=0.01)
        except queue.Empty:
            return None
        if isinstance(item, Exception):
            raise item
        return item


def _wait_until(pred, timeout: float = 1.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def test_rx_worker_delivers_datagrams_with_arrival_time():
    transport = FakeTransport()
    seen = []
    w = RxWorker(transport, lambda data, addr, t: seen.append((data, addr, t)), logger=logging.getLogger("test"))

    before = time.monotonic()
    transport.inbox.put((b"ok", ("192.168.10.1", 8889)))
    w.start()
    try:
        assert _wait_until(lambda: len(seen) == 1)
    finally:
        w.stop()
        w.join(timeout=0.5)

    data, addr, t = seen[0]
    assert data == b"ok"
    assert addr == ("192.168.10.1", 8889)
    assert t >= before


def test_rx_worker_stops_cleanly():
    transport = FakeTransport()
    w = RxWorker(transport, lambda *a: None)

    w.start()
    time.sleep(0.02)
    w.stop()
    w.join(timeout=0.5)

    assert not w.is_alive()
    assert transport.calls > 0


def test_rx_worker_keeps_running_after_handler_error():
    transport = FakeTransport()
    seen = []

    def handler(data, addr, t):
        if data == b"boom":
            raise RuntimeError("handler failed")
        seen.append(data)

    w = RxWorker(transport, handler)
    transport.inbox.put((b"boom", None))
    transport.inbox.put((b"ok", None))
    w.start()
    try:
        assert _wait_until(lambda: seen == [b"ok"])
    finally:
        w.stop()
        w.join(timeout=0.5)

    assert not w.is_alive()


def test_rx_worker_survives_transport_io_error():
    transport = FakeTransport()
    seen = []
    w = RxWorker(transport, lambda data, addr, t: seen.append(data))

    transport.inbox.put(TransportIOError("recv failed"))
    transport.inbox.put((b"after", None))
    w.start()
    try:
        assert _wait_until(lambda: seen == [b"after"])
    finally:
        w.stop()
        w.join(timeout=0.5)
