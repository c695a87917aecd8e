from __future__ import annotations

from typing import Dict, Type

from .base import DatagramTransport
from .udp import UDPTransport
from .errors import TransportError


class TransportDriverRegistry:
    """
    Maps driver keys -> concrete datagram transport classes.
    """

    def __init__(self, drivers: Dict[str, Type[DatagramTransport]]):
        # normalize keys to be case-insensitive
        self._drivers: Dict[str, Type[DatagramTransport]] = {k.lower(): v for k, v in drivers.items()}

    @classmethod
    def default(cls) -> "TransportDriverRegistry":
        return cls(drivers={"udp": UDPTransport})

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[DatagramTransport]:
        key = driver.lower()
        if key not in self._drivers:
            raise TransportError(f"Transport driver '{driver}' not registered")
        return self._drivers[key]

    def create(self, driver: str, **params) -> DatagramTransport:
        """
        Instantiate a transport by driver key. Does NOT open it.
        """
        transport_cls = self.get_class(driver)
        return transport_cls(**params)
