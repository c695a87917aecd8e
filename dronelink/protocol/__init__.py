# protocol/__init__.py

from .dispatcher import CommandDispatcher
from .errors import ProtocolError, CommandFailed, CommandTimeout, SendFailed, CommandCancelled
from .keepalive import KeepAliveDriver
from .reply import CommandResult, Reply, classify_reply
from .telemetry import parse_state
from .timeouts import TimeoutPolicy, base_verb

__all__ = [
    "CommandDispatcher", "KeepAliveDriver", "TimeoutPolicy", "base_verb",
    "CommandResult", "Reply", "classify_reply", "parse_state",
    "ProtocolError", "CommandFailed", "CommandTimeout", "SendFailed", "CommandCancelled",
]
