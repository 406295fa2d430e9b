from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class UnitOutcome(StrEnum):
    SUCCESS = "success"
    FAULT = "fault"


class RunOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


class ExecutionResult(BaseModel):
    """The outcome of executing a single code unit."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int
    output_text: str = ""
    truncated: bool = False
    elapsed_ms: int = 0
    outcome: UnitOutcome = UnitOutcome.SUCCESS
    error: str = ""

    @property
    def output_lines(self) -> list[str]:
        return self.output_text.splitlines()

    @property
    def succeeded(self) -> bool:
        return self.outcome == UnitOutcome.SUCCESS


class ExecutionReport(BaseModel):
    """The result of a complete run, handed to the job system."""

    model_config = ConfigDict(frozen=True)

    overall_outcome: RunOutcome
    per_unit_results: tuple[ExecutionResult, ...] = ()
    diagnostic_messages: tuple[str, ...] = ()
    kernel: str = ""
    server_name: str = ""
    task: str = ""

    @property
    def succeeded(self) -> bool:
        return self.overall_outcome == RunOutcome.SUCCESS

    def output_text(self) -> str:
        return "\n".join(
            result.output_text for result in self.per_unit_results if result.output_text
        )


class ReportBuilder(BaseModel):
    """Mutable accumulator for a report while a run is in progress."""

    kernel: str = ""
    server_name: str = ""
    task: str = ""
    results: list[ExecutionResult] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)
    finalized: bool = False

    def add_result(self, result: ExecutionResult) -> None:
        self.results.append(result)

    def add_diagnostic(self, message: str) -> None:
        self.diagnostics.append(message)

    def finalize(self, failed: bool) -> ExecutionReport:
        if self.finalized:
            raise RuntimeError("Report has already been finalized")
        self.finalized = True
        succeeded = not failed and all(result.succeeded for result in self.results)
        return ExecutionReport(
            overall_outcome=RunOutcome.SUCCESS if succeeded else RunOutcome.FAILURE,
            per_unit_results=tuple(self.results),
            diagnostic_messages=tuple(self.diagnostics),
            kernel=self.kernel,
            server_name=self.server_name,
            task=self.task,
        )
