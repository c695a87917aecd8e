# dronelink/protocol/errors.py

class ProtocolError(Exception):
    """Base for command-level failures (remote error, timeout, send, cancel)."""

class CommandFailed(ProtocolError):
    def __init__(self, cmd: str, response: str):
        super().__init__(f"{cmd} failed: {response}")
        self.cmd = cmd
        self.response = response

class CommandTimeout(ProtocolError):
    def __init__(self, cmd: str, timeout_s: float):
        super().__init__(f"{cmd} timed out after {timeout_s}s")
        self.cmd = cmd
        self.timeout_s = timeout_s

class SendFailed(ProtocolError):
    def __init__(self, cmd: str, reason: str = "send_failed"):
        super().__init__(f"{cmd} send failed ({reason})")
        self.cmd = cmd
        self.reason = reason

class CommandCancelled(ProtocolError):
    def __init__(self, cmd: str):
        super().__init__(f"{cmd} cancelled by queue reset")
        self.cmd = cmd
