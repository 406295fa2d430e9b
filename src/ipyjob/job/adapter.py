"""Glue between a job system (CI build step, scheduler, CLI) and the orchestrator.

The job system knows about jobs: a piece of code or a file in the workspace, a
task label and the name of a kernel. `JobAdapter` turns such a job into an
`ExecutionConfig`, runs it, and hands back the `ExecutionReport` together with a
`JobStatus` the host can record.
"""

import logging
import threading
from enum import StrEnum
from pathlib import Path

from attrs import define, field, frozen

from ipyjob.core.code_unit import SourceFormat, parse_format
from ipyjob.core.errors import ConfigError
from ipyjob.core.execution_config import ExecutionConfig, SourceMode
from ipyjob.core.orchestrator import ExecutionOrchestrator, LogSink
from ipyjob.core.results import ExecutionReport, RunOutcome
from ipyjob.infrastructure.config import KernelRegistry
from ipyjob.interpreter.session import InterpreterSession

logger = logging.getLogger(__name__)

TEXT_PARSER = "text"
FILE_PARSER = "file"


def _empty_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class JobStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @classmethod
    def from_report(cls, report: ExecutionReport) -> "JobStatus":
        return cls.SUCCESS if report.succeeded else cls.FAILURE


@frozen
class JobSettings:
    """The settings of one job as entered by the user.

    `parser_type` is either `"text"` (execute `code`), `"file"` (execute the
    file at `file_path`, format derived from its extension) or the name of a
    source format.
    """

    code: str = ""
    file_path: str | None = field(default=None, converter=_empty_to_none)
    parser_type: str = TEXT_PARSER
    task: str = ""
    kernel_name: str | None = field(default=None, converter=_empty_to_none)

    @property
    def is_text(self) -> bool:
        return self.parser_type == TEXT_PARSER


@frozen
class ValidationMessage:
    kind: str
    message: str

    @classmethod
    def ok(cls) -> "ValidationMessage":
        return cls("ok", "")

    @classmethod
    def warning(cls, message: str) -> "ValidationMessage":
        return cls("warning", message)

    @classmethod
    def error(cls, message: str) -> "ValidationMessage":
        return cls("error", message)

    @property
    def is_ok(self) -> bool:
        return self.kind == "ok"


def check_code(code: str | None) -> ValidationMessage:
    if not code:
        return ValidationMessage.error("Code is empty")
    return ValidationMessage.ok()


def check_file_path(file_path: str | None) -> ValidationMessage:
    if not file_path:
        return ValidationMessage.warning("The file path is required to execute")
    return ValidationMessage.ok()


def check_task(task: str | None) -> ValidationMessage:
    if not task:
        return ValidationMessage.warning("Task name is required to save the artifacts")
    return ValidationMessage.ok()


def kernel_name_items(registry: KernelRegistry) -> list[str]:
    """Kernel names offered to the user, in registry order."""
    return registry.kernel_names()


@define
class JobAdapter:
    """Builds execution configs from job settings and runs them.

    ## Attributes:

    - `registry`: The kernel registry jobs select their kernel from.
    - `artifact_dir`: Where rich outputs are saved; `None` disables saving.
    - `session_factory`: Creates the `InterpreterSession` for each run.
    """

    registry: KernelRegistry
    artifact_dir: Path | None = None
    session_factory: type[InterpreterSession] = InterpreterSession

    def build_config(self, settings: JobSettings, workspace: Path | str) -> ExecutionConfig:
        """Turn `settings` into an `ExecutionConfig`.

        Raises:
            ConfigError: If the job is mis-configured or names an unknown kernel.
        """
        if not settings.parser_type or not settings.task:
            raise ConfigError("Job is mis-configured: parser type and task are required")
        server = self.registry.get(settings.kernel_name)

        source_mode, source, source_format = self._source_of(settings)
        return ExecutionConfig(
            kernel=server.kernel,
            server_name=server.server_name,
            launch_timeout=server.launch_timeout,
            max_results=server.max_results,
            source_mode=source_mode,
            source=source,
            source_format=source_format,
            task=settings.task,
            workspace=Path(workspace),
            execution_timeout=server.execution_timeout,
            connection_file=server.connection_file,
            artifact_dir=self.artifact_dir,
        )

    @staticmethod
    def _source_of(settings: JobSettings) -> tuple[SourceMode, str, SourceFormat | None]:
        match settings.parser_type:
            case "text":
                return SourceMode.INLINE_TEXT, settings.code, SourceFormat.TEXT
            case "file":
                return SourceMode.FILE, settings.file_path or "", None
            case name:
                source_format = parse_format(name)
                if settings.file_path:
                    return SourceMode.FILE, settings.file_path, source_format
                return SourceMode.INLINE_TEXT, settings.code, source_format

    def perform(
        self,
        settings: JobSettings,
        workspace: Path | str,
        sink: LogSink,
        cancel_event: threading.Event | None = None,
    ) -> ExecutionReport:
        """Run the job and return its report. Failures never raise."""
        try:
            config = self.build_config(settings, workspace)
        except ConfigError as e:
            logger.warning(f"{settings.task}:Job not started: {e}")
            sink(f"Configuration error: {e}")
            sink("Finished: FAILURE")
            return ExecutionReport(
                overall_outcome=RunOutcome.FAILURE,
                diagnostic_messages=(f"Configuration error: {e}",),
                kernel=settings.kernel_name or "",
                task=settings.task,
            )

        orchestrator = ExecutionOrchestrator(
            session=self.session_factory(cancel_event=cancel_event), sink=sink
        )
        report = orchestrator.run(config)
        logger.info(f"{settings.task}:Job finished with status {JobStatus.from_report(report)}")
        return report


def write_report(report: ExecutionReport, path: Path | str) -> Path:
    """Write `report` as JSON to `path`, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    logger.debug(f"Wrote execution report to {path}")
    return path
