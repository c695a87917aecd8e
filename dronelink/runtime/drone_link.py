# dronelink/runtime/drone_link.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from dronelink.app.config import DroneLinkConfig, load_config
from dronelink.core.errors import LinkConnectError, TransportConfigError
from dronelink.interfaces.command_sink import CommandSink
from dronelink.protocol._internal.pending_command import PendingCommand
from dronelink.protocol._internal.rx_worker import RxWorker
from dronelink.protocol.dispatcher import CommandDispatcher, Outcome
from dronelink.protocol.keepalive import KeepAliveDriver
from dronelink.runtime.state import LinkStatus, StateCache
from dronelink.transport.base import DatagramTransport
from dronelink.transport.errors import TransportError
from dronelink.transport.registry import TransportDriverRegistry


@dataclass
class DroneLink:
    """
    Host side of the drone link.

    Responsibilities:
      - build/open the reply channel (also used to send commands) and the state channel
      - run one RX worker per channel
      - own the single-flight CommandDispatcher, KeepAliveDriver and StateCache
      - translate low-level open failures into operator-safe errors

    Lifecycle: create -> init_connections() -> submit()/... -> close().
    """

    config: DroneLinkConfig = field(default_factory=load_config)
    command_transport: Optional[DatagramTransport] = None
    state_transport: Optional[DatagramTransport] = None
    cmd_sink: Optional[CommandSink] = None
    logger: Optional[logging.Logger] = None
    drivers: Optional[TransportDriverRegistry] = None

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)
        self._lock = threading.Lock()

        if self.command_transport is None:
            self.command_transport = self._make_transport(self.config.reply_port)
        if self.state_transport is None:
            self.state_transport = self._make_transport(self.config.state_port)

        self._dispatcher = CommandDispatcher(
            self.command_transport,
            self.config.command_address,
            policy=self.config.timeout_policy(),
            error_marker=self.config.error_marker,
            query_verbs=self.config.query_verbs,
            cmd_sink=self.cmd_sink,
            logger=self._log,
        )
        self._keepalive = KeepAliveDriver(
            self._dispatcher,
            period_s=self.config.keepalive_period_s,
            command=self.config.keepalive_command,
            logger=self._log,
        )
        self._state = StateCache(verbose=self.config.verbose_telemetry, logger=self._log)
        self._workers: Dict[str, RxWorker] = {}

    def _make_transport(self, port: int) -> DatagramTransport:
        drivers = self.drivers or TransportDriverRegistry.default()
        driver = self.config.transport_driver
        try:
            return drivers.create(driver, bind_host=self.config.bind_host, bind_port=port)
        except (TransportError, TypeError) as e:
            raise TransportConfigError(
                f"Failed to construct transport (driver='{driver}').",
                hint=str(e),
                details={"driver": driver, "bind_port": port},
            ) from None

    # ---------------- state ----------------
    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    @property
    def connected(self) -> bool:
        with self._lock:
            return bool(self._workers) and all(w.is_alive() for w in self._workers.values())

    def status(self) -> LinkStatus:
        head = self._dispatcher.in_flight()
        return LinkStatus(
            connected=self.connected,
            busy=self._dispatcher.busy,
            queued=self._dispatcher.pending_count(),
            keepalive=self._keepalive.running,
            in_flight=head.command if head is not None else None,
        )

    # ---------------- lifecycle ----------------
    def init_connections(self) -> None:
        """
        Open both channels and (re)attach the RX workers. Calling it again
        replaces the workers, so each datagram is still handled once.
        """
        with self._lock:
            self._stop_workers_locked()

            for name, transport in (("reply", self.command_transport), ("state", self.state_transport)):
                try:
                    transport.open()
                except TransportError as e:
                    self._log.exception("TRANSPORT_OPEN_FAILED channel=%s", name)
                    raise LinkConnectError(
                        f"Could not open the {name} channel.",
                        hint=str(e),
                        details={"channel": name, "driver": type(transport).__name__},
                    ) from None

            self._workers = {
                "reply": RxWorker(
                    self.command_transport,
                    self._dispatcher.on_reply,
                    name="reply-rx",
                    bufsize=self.config.recv_bufsize,
                    logger=self._log,
                ),
                "state": RxWorker(
                    self.state_transport,
                    self._state.on_datagram,
                    name="state-rx",
                    bufsize=self.config.recv_bufsize,
                    logger=self._log,
                ),
            }
            for worker in self._workers.values():
                worker.start()

        self._log.info(
            "LINK_INITIALIZED remote=%s:%d reply_port=%d state_port=%d",
            self.config.host, self.config.command_port, self.config.reply_port, self.config.state_port,
        )

    def _stop_workers_locked(self) -> None:
        workers = list(self._workers.values())
        self._workers = {}
        for worker in workers:
            worker.stop()
        for worker in workers:
            worker.join(timeout=1.0)
            if worker.is_alive():
                self._log.warning("RX_WORKER_STOP_TIMEOUT name=%s", worker.name)

    def close(self) -> None:
        self._keepalive.stop()

        with self._lock:
            self._stop_workers_locked()

        dropped = self._dispatcher.reset_queue()
        if dropped:
            self._log.info("LINK_CLOSED dropped=%d", dropped)

        for transport in (self.command_transport, self.state_transport):
            try:
                transport.close()
            except Exception:
                self._log.exception("Failed to close transport")

        if self.cmd_sink is not None:
            try:
                self.cmd_sink.close()
            except Exception:
                self._log.exception("CMD_SINK_CLOSE_ERROR")

    def __enter__(self) -> "DroneLink":
        self.init_connections()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- commands ----------------
    def submit(self, command: str) -> PendingCommand:
        if not self.connected:
            self.init_connections()
        return self._dispatcher.submit(command)

    def run_in_sequence(self, commands: Iterable[str]) -> List[Outcome]:
        if not self.connected:
            self.init_connections()
        return self._dispatcher.run_in_sequence(commands)

    def reset_queue(self) -> int:
        return self._dispatcher.reset_queue()

    # ---------------- keep-alive ----------------
    def start_keep_alive(self) -> None:
        self._keepalive.start()

    def stop_keep_alive(self) -> None:
        self._keepalive.stop()

    # ---------------- telemetry ----------------
    def read_snapshot(self) -> Dict[str, str]:
        return self._state.snapshot()

    def set_verbose_telemetry(self, enabled: bool) -> None:
        self._state.set_verbose(enabled)
