from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

Address = Tuple[str, int]


class DatagramTransport(ABC):
    """
    Abstract datagram transport (UDP, in-memory loopback, etc.).

    Contract:
      - open()/close() manage the underlying socket. open() on an already open
        transport is a no-op.
      - send(data, dest) transmits one datagram and returns the number of bytes sent.
        Delivery is not guaranteed; failures to hand the datagram to the OS raise.
      - recv(bufsize) returns one (data, source) pair, or None when no datagram
        arrived within the transport's read timeout.
    """

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    def send(self, data: bytes, dest: Address) -> int: ...

    @abstractmethod
    def recv(self, bufsize: int) -> Optional[Tuple[bytes, Address]]: ...

    def __enter__(self) -> "DatagramTransport":
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
