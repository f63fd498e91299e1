"""
Error taxonomy for the harness.

Transient conditions (`ConnectPending`) are absorbed by the retry loops that
raise them. Everything else propagates and fails the test with its message.
"""


class HarnessError(Exception):
    """Base class for all harness failures."""


class SpawnFailure(HarnessError):
    """A child process could not be created."""

    def __init__(self, name: str, cmd: list[str], reason: str):
        self.name = name
        self.cmd = cmd
        super().__init__(f"failed to spawn process '{name}' ({' '.join(cmd)}): {reason}")


class CommandFailed(HarnessError):
    """A one-shot subcommand exited with a non-zero status."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"command failed (exit {returncode}):\n"
            f"  cmd: {' '.join(cmd)}\n"
            f"  stderr: {stderr.strip()}"
        )


class PortAlreadyInUse(HarnessError):
    """Pre-check found a port that is already accepting connections."""

    def __init__(self, address):
        self.address = address
        super().__init__(f"tcp port is already open {address}, this test cannot be run")


class ConnectPending(HarnessError):
    """The port is not accepting connections yet."""

    def __init__(self, address, cause: OSError):
        self.address = address
        self.cause = cause
        super().__init__(f"{address} not reachable ({cause})")


class RpcFailure(HarnessError):
    """An RPC call failed: transport error, malformed response or remote error."""


class RpcError(RpcFailure):
    """Raised when an RPC call returns an error."""

    def __init__(self, error: dict):
        self.code = error.get("code")
        self.message = error.get("message")
        self.data = error.get("data")
        super().__init__(f"RPC Error {self.code}: {self.message}")


class DecodeFailure(HarnessError):
    """Output of a subcommand could not be decoded."""


class TimeoutExceeded(HarnessError):
    """The global timer fired before the workflow finished."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
