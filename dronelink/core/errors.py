# dronelink/core/errors.py
from __future__ import annotations


class DroneLinkError(Exception):
    """
    Base class for all expected operational errors in dronelink.
    """

    #: Stable machine-readable identifier (for exit mapping, service APIs, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (no socket access yet)
# ---------------------------------------------------------------------------

class ConfigError(DroneLinkError):
    """
    Link configuration could not be loaded or is invalid.

    Examples:
      - YAML file missing or not a mapping
      - unknown configuration key
      - negative timeout or keep-alive period
    """
    code = "config_error"


class TransportConfigError(DroneLinkError):
    """
    Transport configuration is invalid.

    Examples:
      - unknown transport driver key
      - driver constructor does not accept the given parameters
    """
    code = "transport_config_error"


# ---------------------------------------------------------------------------
# Connection lifecycle errors
# ---------------------------------------------------------------------------

class LinkConnectError(DroneLinkError):
    """
    A datagram channel could not be opened.

    Examples:
      - local reply/state port already in use
      - permission denied binding the port
    """
    code = "link_connect_error"
