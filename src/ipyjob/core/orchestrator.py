"""Execution of a complete run: parse, connect, execute, release, report.

The orchestrator is the boundary between ipyjob and the job system: whatever
goes wrong inside a run, `ExecutionOrchestrator.run()` returns an
`ExecutionReport` and never raises one of the errors in `ipyjob.core.errors`.
"""

import logging
import platform
import threading
from collections.abc import Callable
from enum import Enum

from ipyjob.core.code_unit import CodeUnit
from ipyjob.core.errors import (
    ConfigError,
    ConnectError,
    FaultError,
    ParseError,
    RunCancelled,
    SourceReadError,
    TransportError,
)
from ipyjob.core.execution_config import ExecutionConfig, SourceMode
from ipyjob.core.results import ExecutionReport, ReportBuilder
from ipyjob.interpreter.session import InterpreterHandle, InterpreterSession
from ipyjob.parsing import notebook_parser

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

EMPTY_FILE_PATH_MESSAGE = "The file path is empty"


class RunState(Enum):
    CONFIGURED = "configured"
    CONNECTING = "connecting"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"


def _log_sink(line: str) -> None:
    logger.info(line)


class ExecutionOrchestrator:
    """Drives the code units of one run through an interpreter session.

    Units are executed in sequence order; the first unit that faults ends the
    run. The interpreter handle is closed on every path out of the running
    phase, including cancellation.

    ## Attributes:

    - `session`: The `InterpreterSession` used to talk to kernels.
    - `sink`: Receives progress, output and diagnostic lines as they occur.
    - `state`: The current `RunState`; `DONE` after `run()` returned.
    """

    def __init__(
        self,
        session: InterpreterSession | None = None,
        sink: LogSink | None = None,
        cancel_event: threading.Event | None = None,
    ):
        if session is None:
            session = InterpreterSession(cancel_event=cancel_event)
        elif cancel_event is not None:
            session.cancel_event = cancel_event
        self.session = session
        self.sink = sink or _log_sink
        self.state = RunState.CONFIGURED

    @property
    def cancel_event(self) -> threading.Event:
        return self.session.cancel_event

    def cancel(self) -> None:
        """Request cancellation of the current run from another thread."""
        self.session.cancel_event.set()

    def run(self, config: ExecutionConfig) -> ExecutionReport:
        self.state = RunState.CONFIGURED
        report = ReportBuilder(
            kernel=config.kernel, server_name=config.server_name, task=config.task
        )
        failed = True
        try:
            failed = self._run(config, report)
        except ConfigError as e:
            self._diagnose(report, f"Configuration error: {e}")
        except ParseError as e:
            self._diagnose(report, f"{type(e).__name__}: {e}")
        except ConnectError as e:
            self._diagnose(report, str(e))
        except TransportError as e:
            self._diagnose(report, f"Connection to kernel '{config.kernel}' lost: {e}")
        except (RunCancelled, KeyboardInterrupt) as e:
            self._diagnose(report, f"Run cancelled: {e}" if str(e) else "Run cancelled")
        except SourceReadError as e:
            self._diagnose(report, f"Cannot read source: {e}")
        except Exception as e:
            logger.debug("Unexpected error during run", exc_info=e)
            self._diagnose(report, f"Internal error: {type(e).__name__}: {e}")

        result = report.finalize(failed)
        self.state = RunState.DONE
        self._emit_verdict(config, result)
        return result

    def _run(self, config: ExecutionConfig, report: ReportBuilder) -> bool:
        """Execute the run. Returns whether the run failed."""
        config.validate()
        if config.source_mode == SourceMode.FILE and not (config.source or "").strip():
            self._diagnose(report, EMPTY_FILE_PATH_MESSAGE)
            return True

        self._emit_header(config)
        units = self._load_units(config)

        self._check_cancelled("before connecting to the kernel")
        self.state = RunState.CONNECTING
        handle = self.session.connect(config)
        try:
            self._check_cancelled("while the kernel was starting")
            self.state = RunState.RUNNING
            return self._execute_units(handle, units, config, report)
        finally:
            self.state = RunState.FINALIZING
            for message in self.session.close(handle):
                self._diagnose(report, message)

    def _load_units(self, config: ExecutionConfig) -> list[CodeUnit]:
        source_format = config.effective_format()
        if config.source_mode == SourceMode.FILE:
            path = config.source_path
            logger.info(f"Reading {source_format} source from {path}")
            try:
                source_bytes = path.read_bytes()
            except OSError as e:
                raise SourceReadError(str(e)) from e
        else:
            source_bytes = (config.source or "").encode("utf-8")
        self.sink(f"Type : {str(source_format).upper()}")
        units = notebook_parser.parse(source_format, source_bytes)
        logger.info(
            f"{config.task}:Parsed {len(units)} code units "
            f"({sum(unit.skip for unit in units)} skipped)"
        )
        return units

    def _execute_units(
        self,
        handle: InterpreterHandle,
        units: list[CodeUnit],
        config: ExecutionConfig,
        report: ReportBuilder,
    ) -> bool:
        self.sink("Output : ")
        for unit in units:
            self._check_cancelled(f"before unit {unit.sequence_number}")
            if unit.skip:
                logger.debug(f"{config.task}:Skipping documentation unit {unit.sequence_number}")
                continue
            for line in unit.source_text.splitlines():
                self.sink(line)
            try:
                result = self.session.execute(handle, unit, config.task, on_output=self.sink)
            except FaultError as e:
                if e.result is not None:
                    report.add_result(e.result)
                self._diagnose(
                    report,
                    f"Execution of unit {unit.sequence_number} failed on kernel "
                    f"'{config.kernel}': {e}",
                )
                return True
            report.add_result(result)
            if result.truncated:
                self.sink(
                    f"[output of unit {unit.sequence_number} truncated "
                    f"after {config.max_results} lines]"
                )
        return False

    def _check_cancelled(self, where: str) -> None:
        if self.cancel_event.is_set():
            raise RunCancelled(f"Cancelled {where}")

    def _emit_header(self, config: ExecutionConfig) -> None:
        self.sink(f"Executed kernel : {config.kernel.upper()}")
        self.sink(f"Language : {config.display_name.upper()}")
        self.sink(f"Platform : {platform.system().upper()}")

    def _emit_verdict(self, config: ExecutionConfig, report: ExecutionReport) -> None:
        verdict = "SUCCESS" if report.succeeded else "FAILURE"
        self.sink(
            f"Finished: {verdict} (kernel '{config.kernel}', "
            f"server '{config.display_name}')"
        )

    def _diagnose(self, report: ReportBuilder, message: str) -> None:
        logger.warning(message)
        report.add_diagnostic(message)
        self.sink(message)


def run(
    config: ExecutionConfig,
    sink: LogSink | None = None,
    cancel_event: threading.Event | None = None,
) -> ExecutionReport:
    """Convenience wrapper: run `config` with a fresh orchestrator."""
    return ExecutionOrchestrator(sink=sink, cancel_event=cancel_event).run(config)

