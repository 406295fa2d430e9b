from ipyjob.interpreter.artifacts import ArtifactStore
from ipyjob.interpreter.session import (
    HandleState,
    InterpreterHandle,
    InterpreterSession,
    OutputCollector,
)

__all__ = [
    "ArtifactStore",
    "HandleState",
    "InterpreterHandle",
    "InterpreterSession",
    "OutputCollector",
]
