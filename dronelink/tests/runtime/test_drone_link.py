from __future__ import annotations

import logging
import queue
import threading
import time

import pytest

from dronelink.app.config import DEBUG_ENV_VAR, DroneLinkConfig
from dronelink.core.errors import LinkConnectError, TransportConfigError
from dronelink.protocol.errors import CommandCancelled, CommandTimeout
from dronelink.runtime.drone_link import DroneLink
from dronelink.transport.base import DatagramTransport
from dronelink.transport.errors import TransportOpenError
from dronelink.transport.registry import TransportDriverRegistry

DRONE = ("192.168.10.1", 8889)


class FakeDatagramTransport(DatagramTransport):
    """In-memory channel: deliver() stages inbound datagrams, sent records outbound."""
    def __init__(self, *, auto_reply: bytes | None = None):
        self.auto_reply = auto_reply
        self.sent: list[tuple[bytes, tuple]] = []
        self.inbox: "queue.Queue[tuple[bytes, tuple]]" = queue.Queue()
        self.opened = 0
        self.closed = 0
        self.raise_on_open: Exception | None = None
        self._open = False

    def open(self) -> None:
        if self.raise_on_open:
            raise self.raise_on_open
        self.opened += 1
        self._open = True

    def close(self) -> None:
        self.closed += 1
        self._open = False

    def is_open(self) -> bool:
        return self._open

    def send(self, data: bytes, dest) -> int:
        self.sent.append((data, dest))
        if self.auto_reply is not None:
            self.deliver(self.auto_reply)
        return len(data)

    def recv(self, bufsize: int):
        try:
            return self.inbox.get(timeout=0.01)
        except queue.Empty:
            return None

    def deliver(self, data: bytes, addr=DRONE) -> None:
        self.inbox.put((data, addr))


def _wait_until(pred, timeout: float = 1.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.005)
    return pred()


def _threads(name: str) -> int:
    return sum(1 for t in threading.enumerate() if t.name == name)


@pytest.fixture
def link():
    cmd = FakeDatagramTransport()
    state = FakeDatagramTransport()
    cfg = DroneLinkConfig(timeouts={"takeoff": 0.1, "rc": 0.5}, keepalive_period_s=0.02)
    lk = DroneLink(
        config=cfg,
        command_transport=cmd,
        state_transport=state,
        logger=logging.getLogger("test"),
    )
    lk.init_connections()
    yield lk, cmd, state
    lk.close()


def test_submit_sends_to_drone_and_resolves_on_reply(link):
    lk, cmd, _ = link

    p = lk.submit("command")
    assert cmd.sent == [(b"command", DRONE)]

    cmd.deliver(b"ok")
    assert p.result(timeout=1.0).response == "ok"


def test_battery_query_returns_value(link):
    lk, cmd, _ = link

    p = lk.submit("battery?")
    cmd.deliver(b"87\r\n")

    assert p.result(timeout=1.0).result == "87"


def test_takeoff_timeout_then_land_sent_once(link):
    lk, cmd, _ = link

    takeoff = lk.submit("takeoff")
    land = lk.submit("land")

    with pytest.raises(CommandTimeout):
        takeoff.result(timeout=1.0)

    assert lk.dispatcher.busy is True
    assert [d for d, _ in cmd.sent] == [b"takeoff", b"land"]
    cmd.deliver(b"ok")
    assert land.result(timeout=1.0).response == "ok"
    assert [d for d, _ in cmd.sent] == [b"takeoff", b"land"]


def test_default_link_honours_drone_debug_env(monkeypatch):
    monkeypatch.setenv(DEBUG_ENV_VAR, "true")
    lk = DroneLink(command_transport=FakeDatagramTransport(), state_transport=FakeDatagramTransport())

    assert lk.config.verbose_telemetry is True
    assert lk.config.timeout_policy().timeout_for("takeoff") == 7.0
    assert lk._state.verbose is True


def test_default_link_is_quiet_without_drone_debug(monkeypatch):
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)
    lk = DroneLink(command_transport=FakeDatagramTransport(), state_transport=FakeDatagramTransport())

    assert lk.config == DroneLinkConfig()
    assert lk._state.verbose is False


def test_run_in_sequence_through_link():
    cmd = FakeDatagramTransport(auto_reply=b"ok")
    lk = DroneLink(command_transport=cmd, state_transport=FakeDatagramTransport())
    try:
        outcomes = lk.run_in_sequence(["command", "takeoff", "land"])
    finally:
        lk.close()

    assert [o.command for o in outcomes] == ["command", "takeoff", "land"]


def test_telemetry_replaces_snapshot(link):
    lk, _, state = link

    state.deliver(b"pitch:0;roll:1;yaw:-3;vgx:0;\r\n")
    assert _wait_until(lambda: lk.read_snapshot() == {"pitch": "0", "roll": "1", "yaw": "-3", "vgx": "0"})

    state.deliver(b"bat:80;")
    assert _wait_until(lambda: lk.read_snapshot() == {"bat": "80"})


def test_snapshot_is_a_copy(link):
    lk, _, state = link

    state.deliver(b"bat:80;")
    assert _wait_until(lambda: lk.read_snapshot() == {"bat": "80"})

    snap = lk.read_snapshot()
    snap["bat"] = "0"
    assert lk.read_snapshot() == {"bat": "80"}


def test_verbose_telemetry_logs_state(link, caplog):
    lk, _, state = link

    lk.set_verbose_telemetry(True)
    with caplog.at_level(logging.INFO, logger="test"):
        state.deliver(b"h:10;")
        assert _wait_until(lambda: lk.read_snapshot() == {"h": "10"})
        assert _wait_until(lambda: any("DRONE_STATE h:10;" in r.getMessage() for r in caplog.records))


def test_init_connections_is_idempotent(link):
    lk, cmd, _ = link

    lk.init_connections()
    lk.init_connections()

    assert _threads("reply-rx") == 1
    assert _threads("state-rx") == 1
    assert lk.connected is True

    p = lk.submit("command")
    cmd.deliver(b"ok")
    assert p.result(timeout=1.0).response == "ok"
    assert lk.dispatcher.pending_count() == 0


def test_reset_queue_returns_count_and_cancels(link):
    lk, cmd, _ = link

    handles = [lk.submit(c) for c in ("up 50", "down 50")]

    assert lk.reset_queue() == 2
    for h in handles:
        with pytest.raises(CommandCancelled):
            h.result(0)
    assert lk.status().busy is False


def test_keep_alive_through_link(link):
    lk, cmd, _ = link
    cmd.auto_reply = b"ok"

    lk.start_keep_alive()
    lk.start_keep_alive()
    try:
        assert _threads("keepalive") == 1
        assert _wait_until(lambda: any(d == b"rc 0 0 0 0" for d, _ in cmd.sent))
        assert lk.status().keepalive is True
    finally:
        lk.stop_keep_alive()
    lk.stop_keep_alive()
    assert lk.status().keepalive is False


def test_status_reports_in_flight(link):
    lk, cmd, _ = link

    lk.submit("forward 20")
    lk.submit("back 20")
    st = lk.status()

    assert st.connected is True
    assert st.busy is True
    assert st.queued == 2
    assert st.in_flight == "forward 20"


def test_close_stops_workers_and_closes_transports():
    cmd = FakeDatagramTransport()
    state = FakeDatagramTransport()
    lk = DroneLink(command_transport=cmd, state_transport=state)
    lk.init_connections()

    p = lk.submit("takeoff")
    lk.close()

    assert lk.connected is False
    assert cmd.closed == 1 and state.closed == 1
    with pytest.raises(CommandCancelled):
        p.result(0)


def test_open_failure_maps_to_link_connect_error():
    cmd = FakeDatagramTransport()
    state = FakeDatagramTransport()
    state.raise_on_open = TransportOpenError("port 8890 in use")
    lk = DroneLink(command_transport=cmd, state_transport=state)

    with pytest.raises(LinkConnectError) as ei:
        lk.init_connections()

    assert ei.value.details["channel"] == "state"
    assert "8890" in ei.value.hint
    lk.close()


def test_default_transports_come_from_driver_registry():
    built = []

    class RecordingTransport(FakeDatagramTransport):
        def __init__(self, bind_host: str = "", bind_port: int = 0):
            super().__init__()
            built.append((bind_host, bind_port))

    cfg = DroneLinkConfig(transport_driver="fake")
    DroneLink(config=cfg, drivers=TransportDriverRegistry({"fake": RecordingTransport}))

    assert built == [("", 9000), ("", 8890)]


def test_unknown_driver_raises_transport_config_error():
    with pytest.raises(TransportConfigError):
        DroneLink(config=DroneLinkConfig(transport_driver="serial"))
