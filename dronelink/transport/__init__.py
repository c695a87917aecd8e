from .base import Address, DatagramTransport
from .udp import UDPTransport
from .registry import TransportDriverRegistry

__all__ = ["Address", "DatagramTransport", "UDPTransport", "TransportDriverRegistry"]
