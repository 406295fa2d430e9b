from ipyjob.core.code_unit import CodeUnit, SourceFormat
from ipyjob.core.errors import (
    ConfigError,
    ConnectError,
    ExecutionTimeoutError,
    FaultError,
    FormatError,
    IpyjobError,
    ParseError,
    RunCancelled,
    SourceReadError,
    StructureError,
    TransportError,
)
from ipyjob.core.execution_config import ExecutionConfig, SourceMode
from ipyjob.core.results import ExecutionReport, ExecutionResult, RunOutcome, UnitOutcome

__all__ = [
    "CodeUnit",
    "ConfigError",
    "ConnectError",
    "ExecutionConfig",
    "ExecutionReport",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "FaultError",
    "FormatError",
    "IpyjobError",
    "ParseError",
    "RunCancelled",
    "RunOutcome",
    "SourceFormat",
    "SourceMode",
    "SourceReadError",
    "StructureError",
    "TransportError",
    "UnitOutcome",
]
