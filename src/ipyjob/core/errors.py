"""Error taxonomy for execution runs.

All of these errors are caught by the `ExecutionOrchestrator` and turned into a
failed `ExecutionReport`; none of them is ever seen by the job system.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ipyjob.core.results import ExecutionResult


class IpyjobError(Exception):
    """Base class for all errors raised by ipyjob."""


class ConfigError(IpyjobError):
    """Missing or invalid configuration. Never retried."""


class SourceReadError(IpyjobError):
    """The source file could not be read from the workspace."""


class ParseError(IpyjobError):
    """The source document could not be turned into code units."""


class FormatError(ParseError):
    """The source bytes cannot be decoded as the declared format."""


class StructureError(ParseError):
    """A required part of the document (cells, paragraphs, text) is missing."""


class ConnectError(IpyjobError):
    """The kernel session could not be established."""

    def __init__(self, kernel: str, reason: str):
        super().__init__(f"Could not connect to kernel '{kernel}': {reason}")
        self.kernel = kernel
        self.reason = reason


class FaultError(IpyjobError):
    """The kernel reported an error while executing a code unit.

    This is a failure of the user code, not of the connection. The partially
    captured result of the unit is available as `result`.
    """

    def __init__(
        self,
        ename: str,
        evalue: str,
        traceback: list[str] | None = None,
        result: "ExecutionResult | None" = None,
    ):
        super().__init__(f"{ename}: {evalue}")
        self.ename = ename
        self.evalue = evalue
        self.traceback = traceback or []
        self.result = result


class ExecutionTimeoutError(FaultError):
    """A code unit ran longer than the configured execution timeout."""

    def __init__(self, timeout: float, result: "ExecutionResult | None" = None):
        super().__init__(
            "ExecutionTimeout",
            f"Execution did not finish within {timeout:g} seconds",
            result=result,
        )
        self.timeout = timeout


class TransportError(IpyjobError):
    """The connection to the kernel was lost while a unit was running."""


class RunCancelled(IpyjobError):
    """The run was cancelled by the job system."""
