from enum import StrEnum
from pathlib import Path

from attrs import field, frozen

from ipyjob.core.code_unit import SourceFormat, format_for_path
from ipyjob.core.errors import ConfigError
from ipyjob.utils.path_utils import resolve_in_workspace


class SourceMode(StrEnum):
    INLINE_TEXT = "inline-text"
    FILE = "file"


def _optional_path(value: str | Path | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(value)


@frozen
class ExecutionConfig:
    """Everything needed to execute one run. Built once, never modified.

    ## Attributes:

    - `kernel`: Name of the kernel (kernel spec) to execute on.
    - `server_name`: Display name of the language/server, used in log output.
    - `launch_timeout`: Seconds to wait for the kernel to become ready.
    - `max_results`: Maximum number of output lines captured per code unit.
    - `source_mode`: Whether `source` is inline code or a file path.
    - `source`: The inline code or the workspace-relative file path.
    - `source_format`: Declared format. `None` in file mode means "derive it
      from the file extension".
    - `task`: Label used to tag the output of the run.
    - `workspace`: Root directory against which file sources are resolved.
    - `execution_timeout`: Optional per-unit deadline in seconds.
    - `connection_file`: Attach to an already running kernel instead of
      starting one.
    - `artifact_dir`: Directory in which rich outputs are saved, if any.
    """

    kernel: str
    server_name: str = ""
    launch_timeout: float = 30.0
    max_results: int = 1000
    source_mode: SourceMode = field(default=SourceMode.INLINE_TEXT, converter=SourceMode)
    source: str = ""
    source_format: SourceFormat | None = None
    task: str = ""
    workspace: Path = field(factory=Path.cwd, converter=Path)
    execution_timeout: float | None = None
    connection_file: Path | None = field(default=None, converter=_optional_path)
    artifact_dir: Path | None = field(default=None, converter=_optional_path)

    @property
    def display_name(self) -> str:
        return self.server_name or self.kernel

    @property
    def source_path(self) -> Path:
        """The absolute path of a file source."""
        return resolve_in_workspace(self.source, self.workspace)

    def effective_format(self) -> SourceFormat:
        if self.source_format is not None:
            return self.source_format
        if self.source_mode == SourceMode.INLINE_TEXT:
            return SourceFormat.TEXT
        return format_for_path(self.source)

    def validate(self) -> None:
        """Check that the config is complete enough to start a run.

        An empty file source is deliberately not checked here: it is reported
        as "nothing to execute" by the orchestrator.
        """
        if not self.kernel or not self.kernel.strip():
            raise ConfigError("No kernel configured")
        if not self.task or not self.task.strip():
            raise ConfigError("No task configured")
        if self.source_mode == SourceMode.INLINE_TEXT and self.source_format is None:
            raise ConfigError("No source format configured for inline code")
        if self.max_results < 0:
            raise ConfigError(f"max_results must not be negative, got {self.max_results}")
        if self.launch_timeout <= 0:
            raise ConfigError(
                f"launch_timeout must be positive, got {self.launch_timeout}"
            )
        if self.execution_timeout is not None and self.execution_timeout <= 0:
            raise ConfigError(
                f"execution_timeout must be positive, got {self.execution_timeout}"
            )
