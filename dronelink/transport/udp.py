from __future__ import annotations

import socket
from typing import Optional, Tuple

from .base import Address, DatagramTransport
from .errors import TransportIOError, TransportOpenError


class UDPTransport(DatagramTransport):
    """
    UDP transport implemented via the socket module.

    The socket is bound to (bind_host, bind_port) so replies sent back to that
    port are received here; bind_port=0 lets the OS pick one.
    recv() waits at most `timeout` seconds and returns None if nothing arrived.
    """

    def __init__(self, bind_host: str = "", bind_port: int = 0, timeout: float = 0.05):
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.timeout = timeout
        self.sock: Optional[socket.socket] = None

    def open(self) -> None:
        if self.sock is not None:
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.bind_host, self.bind_port))
            sock.settimeout(self.timeout)
        except OSError as e:
            sock.close()
            raise TransportOpenError(
                f"UDP bind {self.bind_host or '0.0.0.0'}:{self.bind_port} failed: {e}"
            ) from None
        self.sock = sock

    def close(self) -> None:
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None

    def is_open(self) -> bool:
        return self.sock is not None

    @property
    def local_address(self) -> Optional[Address]:
        if self.sock is None:
            return None
        return self.sock.getsockname()

    def send(self, data: bytes, dest: Address) -> int:
        if self.sock is None:
            raise TransportIOError("send while transport not open")

        try:
            return self.sock.sendto(data, dest)
        except OSError as e:
            raise TransportIOError(f"UDP send to {dest[0]}:{dest[1]} failed: {e}") from None

    def recv(self, bufsize: int) -> Optional[Tuple[bytes, Address]]:
        sock = self.sock
        if sock is None:
            raise TransportIOError("recv while transport not open")

        try:
            data, addr = sock.recvfrom(bufsize)
        except socket.timeout:
            return None
        except OSError as e:
            raise TransportIOError(f"UDP recv failed: {e}") from None
        return data, addr
