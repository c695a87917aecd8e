# dronelink/protocol/dispatcher.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol as TypingProtocol, Union

from dronelink.interfaces.command_sink import CommandEvent, CommandSink
from dronelink.transport.base import Address
from ._internal.pending_command import PendingCommand
from .errors import CommandCancelled, CommandFailed, CommandTimeout, ProtocolError, SendFailed
from .reply import ERROR_MARKER, CommandResult, classify_reply
from .timeouts import TimeoutPolicy

Outcome = Union[CommandResult, ProtocolError]


class DatagramSender(TypingProtocol):
    """Minimal send interface used by CommandDispatcher."""
    def send(self, data: bytes, dest: Address) -> int: ...


class CommandDispatcher:
    """
    Single-flight command dispatcher.

    The wire protocol carries no request id, so every reply is attributed to
    the queue head. That is only sound because at most one command is ever in
    flight: the head is sent, and nothing behind it is sent until the head
    settles (reply, remote error, timeout or send failure).

    All queue/busy mutation happens under one lock. Futures are settled under
    that lock too, so settlement order is submission order; done-callbacks may
    call submit() again from the same thread.
    """

    def __init__(
        self,
        transport: DatagramSender,
        dest: Address,
        *,
        policy: Optional[TimeoutPolicy] = None,
        error_marker: str = ERROR_MARKER,
        query_verbs: Iterable[str] = ("battery?",),
        encoding: str = "utf-8",
        cmd_sink: Optional[CommandSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.dest = (str(dest[0]), int(dest[1]))
        self.policy = policy or TimeoutPolicy()
        self.error_marker = error_marker
        self.query_verbs = frozenset(query_verbs)
        self.encoding = encoding

        self._cmd_sink = cmd_sink
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._queue: Deque[PendingCommand] = deque()
        self._busy = False

    # ---------------- State ----------------
    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def in_flight(self) -> Optional[PendingCommand]:
        with self._lock:
            return self._queue[0] if self._busy else None

    # ---------------- Command API ----------------
    def submit(self, command: str) -> PendingCommand:
        """Queue a command; returns a handle that settles exactly once."""
        pending = PendingCommand(command, self.policy.timeout_for(command))
        with self._lock:
            self._queue.append(pending)
            self._log.debug("CMD_QUEUED cmd=%s depth=%d", command, len(self._queue))
            self._drain()
        return pending

    def send_command(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Blocking submit(); raises the ProtocolError the command failed with."""
        return self.submit(command).result(timeout=timeout)

    def run_in_sequence(self, commands: Iterable[str]) -> List[Outcome]:
        """
        Best-effort batch: each command is submitted only after the previous one
        settled. Failures are logged and do not stop the batch.
        """
        outcomes: List[Outcome] = []
        for command in commands:
            try:
                outcomes.append(self.submit(command).result())
            except ProtocolError as e:
                self._log.error("SEQUENCE_CMD_FAILED cmd=%s error=%s", command, e)
                outcomes.append(e)
        return outcomes

    def reset_queue(self) -> int:
        """
        Drop every queued command (including the one in flight) and clear busy.
        Dropped handles settle with CommandCancelled. Returns how many were dropped.
        """
        with self._lock:
            dropped = list(self._queue)
            self._queue.clear()
            self._busy = False
            for pending in dropped:
                if pending.set_error(CommandCancelled(pending.command)):
                    self._emit(pending, "cancelled")
        self._log.info("QUEUE_RESET dropped=%d", len(dropped))
        return len(dropped)

    # ---------------- Dispatch loop ----------------
    def _drain(self) -> None:
        # caller holds self._lock
        while not self._busy and self._queue:
            pending = self._queue[0]
            if pending.done():
                # handle cancelled by its caller before transmission
                self._queue.popleft()
                self._log.info("CMD_SKIPPED cmd=%s", pending.command)
                continue
            self._busy = True

            pending.arm_timer(self._on_timeout)
            pending.sent_at = time.monotonic()
            self._log.info("CMD_SENT cmd=%s timeout_s=%.1f", pending.command, pending.timeout_s)

            try:
                self.transport.send(pending.command.encode(self.encoding), self.dest)
            except Exception as e:
                self._log.exception("CMD_SEND_FAILED cmd=%s", pending.command)
                self._settle(pending, error=SendFailed(pending.command, str(e)), kind="send_failed")
                continue

            self._emit(pending, "send")

    def _settle(
        self,
        pending: PendingCommand,
        *,
        response: Optional[str] = None,
        error: Optional[ProtocolError] = None,
        kind: str,
    ) -> None:
        # caller holds self._lock; pending is the head
        self._queue.popleft()
        self._busy = False
        if error is not None:
            settled = pending.set_error(error)
        else:
            settled = pending.set_result(response or "")
        if settled:
            self._emit(pending, kind, response=response, error=error)

    def _on_timeout(self, pending: PendingCommand) -> None:
        with self._lock:
            if not self._is_head(pending):
                return
            if pending.done():
                # cancelled by its caller while in flight; free the slot
                self._queue.popleft()
                self._busy = False
                self._log.info("CMD_ABANDONED cmd=%s", pending.command)
                self._drain()
                return
            self._log.warning("CMD_TIMEOUT cmd=%s timeout_s=%.1f", pending.command, pending.timeout_s)
            self._settle(pending, error=CommandTimeout(pending.command, pending.timeout_s), kind="timeout")
            self._drain()

    def _is_head(self, pending: PendingCommand) -> bool:
        return self._busy and bool(self._queue) and self._queue[0] is pending

    # ---------------- Reply demux ----------------
    def on_reply(self, data: bytes, addr: Any = None, received_at: Optional[float] = None) -> bool:
        """
        Attribute one reply datagram to the in-flight command.

        Returns False when the reply could not be attributed: nothing in flight,
        or the datagram arrived before the current head was transmitted (a late
        reply to a command that already settled).
        """
        reply = classify_reply(data, error_marker=self.error_marker)
        arrived = time.monotonic() if received_at is None else received_at

        with self._lock:
            pending = self._queue[0] if self._busy and self._queue else None
            if pending is None:
                self._log.warning("REPLY_UNATTRIBUTED reply=%r from=%s", reply.text, addr)
                return False
            if pending.sent_at is not None and arrived < pending.sent_at:
                self._log.warning("REPLY_STALE reply=%r head=%s", reply.text, pending.command)
                return False

            self._log.info("REPLY cmd=%s reply=%r", pending.command, reply.text)
            if not reply.ok:
                self._settle(pending, error=CommandFailed(pending.command, reply.text), kind="error")
            else:
                if pending.verb in self.query_verbs:
                    pending.result_value = reply.trimmed
                self._settle(pending, response=reply.trimmed, kind="ok")
            self._drain()
        return True

    # ---------------- Command events ----------------
    def _emit(
        self,
        pending: PendingCommand,
        kind: str,
        *,
        response: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        if self._cmd_sink is None:
            return

        payload: Dict[str, Any]
        if kind == "send":
            payload = {"timeout_s": pending.timeout_s}
        else:
            elapsed_ms = (time.monotonic() - (pending.sent_at or pending.created_at)) * 1000.0
            payload = {"elapsed_ms": round(elapsed_ms, 3)}
            if response is not None:
                payload["response"] = response
            if pending.result_value is not None:
                payload["result"] = pending.result_value
            if error is not None:
                payload["error"] = str(error)

        try:
            self._cmd_sink.on_command(
                CommandEvent(
                    name=pending.command,
                    kind=kind,
                    payload=payload,
                    request_id=str(pending.request_id),
                    ts_utc=datetime.now(timezone.utc).isoformat(),
                )
            )
        except Exception:
            self._log.exception("CMD_SINK_ERROR cmd=%s kind=%s", pending.command, kind)
