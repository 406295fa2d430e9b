"""Sessions with Jupyter kernels.

An `InterpreterSession` starts (or attaches to) a kernel, sends code units to
it one at a time and collects their output. The kernel is only reachable
through the Jupyter messaging protocol, so everything it does is observed via
the messages on its IOPub channel.
"""

import logging
import queue
import re
import threading
import time
from collections.abc import Callable
from enum import Enum

import zmq
from jupyter_client import BlockingKernelClient, KernelManager
from jupyter_client.kernelspec import NoSuchKernel

from ipyjob.core.code_unit import CodeUnit
from ipyjob.core.errors import (
    ConnectError,
    ExecutionTimeoutError,
    FaultError,
    RunCancelled,
    TransportError,
)
from ipyjob.core.execution_config import ExecutionConfig
from ipyjob.core.results import ExecutionResult, UnitOutcome
from ipyjob.interpreter.artifacts import ArtifactStore

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

# How long a single wait for an IOPub message may block. Between waits the
# session checks for cancellation, deadlines and kernel liveness.
DEFAULT_POLL_INTERVAL = 0.5

ANSI_ESCAPE_REGEX = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


class HandleState(Enum):
    CREATED = "created"
    CONNECTED = "connected"
    EXECUTING = "executing"
    CLOSED = "closed"


class InterpreterHandle:
    """A single-use connection to one kernel.

    Creating a handle does not perform any I/O; the kernel is only started by
    `InterpreterSession.connect()` and released by `InterpreterSession.close()`.
    """

    def __init__(self, config: ExecutionConfig):
        self.config = config
        self.state = HandleState.CREATED
        self.kernel_manager: KernelManager | None = None
        self.client: BlockingKernelClient | None = None
        self.artifacts: ArtifactStore | None = None

    @property
    def kernel(self) -> str:
        return self.config.kernel

    @property
    def owns_kernel(self) -> bool:
        return self.kernel_manager is not None

    def __repr__(self):
        return f"InterpreterHandle(kernel={self.kernel!r}, state={self.state.value})"


class OutputCollector:
    """Collects output lines of one code unit, up to `max_results` lines.

    Lines beyond the limit are drained and dropped; `truncated` records that
    this happened. Every kept line is passed to `on_output` as soon as it is
    complete.
    """

    def __init__(self, max_results: int, on_output: OutputCallback | None = None):
        self.max_results = max_results
        self.on_output = on_output
        self.lines: list[str] = []
        self.truncated = False
        self._pending = ""

    def add_text(self, text: str) -> None:
        """Add stream text, which may end in the middle of a line."""
        *complete, self._pending = (self._pending + text).split("\n")
        for line in complete:
            self._add_line(line)

    def add_block(self, text: str) -> None:
        """Add a self-contained block of text, e.g., an `execute_result`."""
        self.flush()
        for line in text.splitlines():
            self._add_line(line)

    def flush(self) -> None:
        if self._pending:
            line, self._pending = self._pending, ""
            self._add_line(line)

    def _add_line(self, line: str) -> None:
        if len(self.lines) >= self.max_results:
            self.truncated = True
            return
        self.lines.append(line)
        if self.on_output is not None:
            self.on_output(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class InterpreterSession:
    """Connects to kernels and executes code units on them.

    Units are executed strictly one after the other: kernels are stateful, and
    later units may use variables defined by earlier ones.

    Args:
        kernel_manager_factory: Creates the `KernelManager` for a kernel name.
            Defaults to `jupyter_client.KernelManager`.
        client_factory: Creates a client for a kernel connection file. Defaults
            to `jupyter_client.BlockingKernelClient`.
        poll_interval: Seconds to block waiting for a single kernel message.
        cancel_event: When set, the currently executing unit is interrupted
            and `RunCancelled` is raised.
    """

    def __init__(
        self,
        kernel_manager_factory: Callable[..., KernelManager] | None = None,
        client_factory: Callable[..., BlockingKernelClient] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        cancel_event: threading.Event | None = None,
    ):
        self.kernel_manager_factory = kernel_manager_factory or KernelManager
        self.client_factory = client_factory or BlockingKernelClient
        self.poll_interval = poll_interval
        self.cancel_event = cancel_event or threading.Event()

    def connect(self, config: ExecutionConfig) -> InterpreterHandle:
        """Start the kernel for `config` and wait until it is ready.

        Raises:
            ConnectError: If the kernel is unknown, does not become ready within
                `config.launch_timeout`, or the connection is refused.
        """
        handle = InterpreterHandle(config)
        try:
            if config.connection_file is not None:
                logger.info(f"Attaching to kernel via {config.connection_file}")
                client = self.client_factory(connection_file=str(config.connection_file))
                client.load_connection_file()
            else:
                logger.info(f"Starting kernel '{config.kernel}'")
                km = self.kernel_manager_factory(kernel_name=config.kernel)
                handle.kernel_manager = km
                km.start_kernel(**self._kernel_launch_args(config))
                client = km.client()
            handle.client = client
            client.start_channels()
            client.wait_for_ready(timeout=config.launch_timeout)
        except NoSuchKernel as e:
            self._release(handle)
            raise ConnectError(config.kernel, f"no kernel spec named '{config.kernel}'") from e
        except (RuntimeError, TimeoutError) as e:
            self._release(handle)
            raise ConnectError(
                config.kernel,
                f"kernel not ready within {config.launch_timeout:g} seconds ({e})",
            ) from e
        except (OSError, zmq.ZMQError) as e:
            self._release(handle)
            raise ConnectError(config.kernel, f"connection refused ({e})") from e
        except KeyboardInterrupt:
            self._release(handle)
            raise

        handle.state = HandleState.CONNECTED
        if config.artifact_dir is not None:
            handle.artifacts = ArtifactStore(config.artifact_dir, config.task)
        logger.info(f"Connection to kernel '{config.kernel}' initiated successfully")
        return handle

    @staticmethod
    def _kernel_launch_args(config: ExecutionConfig) -> dict:
        if config.workspace.is_dir():
            return {"cwd": str(config.workspace)}
        return {}

    def execute(
        self,
        handle: InterpreterHandle,
        code_unit: CodeUnit,
        task: str,
        on_output: OutputCallback | None = None,
    ) -> ExecutionResult:
        """Execute `code_unit` on the kernel of `handle`.

        Blocks until the kernel reports that it is idle again. Output beyond
        `max_results` lines is drained but not kept.

        Raises:
            FaultError: The kernel reported an error. The partial result is
                attached to the exception.
            ExecutionTimeoutError: The unit exceeded `execution_timeout`.
            TransportError: The connection to the kernel was lost.
            RunCancelled: `cancel_event` was set while the unit was running.
        """
        if handle.state not in (HandleState.CONNECTED, HandleState.EXECUTING):
            raise TransportError(f"Kernel session is not connected ({handle.state.value})")
        assert handle.client is not None

        config = handle.config
        collector = OutputCollector(config.max_results, on_output)
        logger.debug(
            f"{task}:Executing unit {code_unit.sequence_number} on '{config.kernel}'"
        )
        handle.state = HandleState.EXECUTING
        start = time.monotonic()
        try:
            try:
                msg_id = handle.client.execute(
                    code_unit.source_text, store_history=True, allow_stdin=False
                )
            except (zmq.ZMQError, RuntimeError) as e:
                raise TransportError(f"Could not send code to kernel: {e}") from e
            fault = self._drain(handle, code_unit, msg_id, collector, start)
        finally:
            if handle.state == HandleState.EXECUTING:
                handle.state = HandleState.CONNECTED

        result = self._make_result(code_unit, collector, start, fault)
        if fault is not None:
            ename, evalue, traceback = fault
            raise FaultError(ename, evalue, traceback, result=result)
        return result

    def _drain(
        self,
        handle: InterpreterHandle,
        code_unit: CodeUnit,
        msg_id: str,
        collector: OutputCollector,
        start: float,
    ) -> tuple[str, str, list[str]] | None:
        """Process IOPub messages for `msg_id` until the kernel becomes idle."""
        client = handle.client
        timeout = handle.config.execution_timeout
        fault = None
        while True:
            if self.cancel_event.is_set():
                self._interrupt(handle)
                raise RunCancelled(f"Execution of unit {code_unit.sequence_number} cancelled")
            if timeout is not None and time.monotonic() - start > timeout:
                self._interrupt(handle)
                collector.flush()
                timeout_error = ExecutionTimeoutError(timeout)
                timeout_error.result = self._make_result(
                    code_unit, collector, start, (timeout_error.ename, timeout_error.evalue, [])
                )
                raise timeout_error
            try:
                msg = client.get_iopub_msg(timeout=self.poll_interval)
            except queue.Empty:
                self._check_alive(handle)
                continue
            except (zmq.ZMQError, RuntimeError) as e:
                raise TransportError(f"Lost connection to kernel: {e}") from e

            if msg.get("parent_header", {}).get("msg_id") != msg_id:
                continue
            msg_type = msg["header"]["msg_type"]
            content = msg.get("content", {})
            match msg_type:
                case "stream":
                    collector.add_text(content.get("text", ""))
                case "execute_result" | "display_data":
                    self._handle_rich_output(handle, code_unit, content, collector)
                case "error":
                    fault = (
                        content.get("ename", "Error"),
                        content.get("evalue", ""),
                        content.get("traceback", []),
                    )
                    for line in fault[2]:
                        collector.add_block(ANSI_ESCAPE_REGEX.sub("", line))
                case "status":
                    if content.get("execution_state") == "idle":
                        collector.flush()
                        return fault

    @staticmethod
    def _handle_rich_output(
        handle: InterpreterHandle,
        code_unit: CodeUnit,
        content: dict,
        collector: OutputCollector,
    ) -> None:
        data = content.get("data", {})
        if handle.artifacts is not None:
            try:
                path = handle.artifacts.save(code_unit.sequence_number, data)
            except (OSError, ValueError) as e:
                # binascii.Error from bad base64 is a ValueError
                logger.warning(
                    f"Could not save output of unit {code_unit.sequence_number} "
                    f"as artifact: {e}"
                )
                path = None
            if path is not None:
                collector.add_block(f"[saved {path.name}]")
                return
        text = data.get("text/plain")
        if text:
            collector.add_block("".join(text) if isinstance(text, list) else text)

    @staticmethod
    def _make_result(
        code_unit: CodeUnit,
        collector: OutputCollector,
        start: float,
        fault: tuple[str, str, list[str]] | None,
    ) -> ExecutionResult:
        return ExecutionResult(
            sequence_number=code_unit.sequence_number,
            output_text=collector.text,
            truncated=collector.truncated,
            elapsed_ms=int((time.monotonic() - start) * 1000),
            outcome=UnitOutcome.SUCCESS if fault is None else UnitOutcome.FAULT,
            error="" if fault is None else f"{fault[0]}: {fault[1]}",
        )

    @staticmethod
    def _check_alive(handle: InterpreterHandle) -> None:
        if handle.kernel_manager is not None:
            alive = handle.kernel_manager.is_alive()
        else:
            alive = handle.client.is_alive()
        if not alive:
            raise TransportError(f"Kernel '{handle.kernel}' died during execution")

    @staticmethod
    def _interrupt(handle: InterpreterHandle) -> None:
        if handle.kernel_manager is None:
            logger.debug(f"Cannot interrupt kernel '{handle.kernel}': not owned by session")
            return
        try:
            handle.kernel_manager.interrupt_kernel()
            logger.debug(f"Interrupted kernel '{handle.kernel}'")
        except Exception as e:
            logger.warning(f"Could not interrupt kernel '{handle.kernel}': {e}")

    def close(self, handle: InterpreterHandle) -> list[str]:
        """Release the kernel of `handle`. Idempotent and never raises.

        Returns:
            Diagnostic messages for everything that went wrong while releasing.
        """
        if handle.state == HandleState.CLOSED:
            return []
        return self._release(handle)

    @staticmethod
    def _release(handle: InterpreterHandle) -> list[str]:
        """Stop the client channels, shut down the kernel and free ZMQ resources.

        Kernels we only attached to via a connection file are left running.
        """
        diagnostics = []
        handle.state = HandleState.CLOSED
        try:
            if handle.client is not None:
                try:
                    handle.client.stop_channels()
                    logger.debug(f"Stopped channels of kernel '{handle.kernel}'")
                except Exception as e:
                    logger.debug(f"Error stopping channels: {e}")
                    diagnostics.append(f"Error stopping kernel channels: {e}")

            km = handle.kernel_manager
            if km is not None:
                try:
                    if km.has_kernel:
                        km.shutdown_kernel(now=True)
                        logger.debug(f"Shut down kernel '{handle.kernel}'")
                except Exception as e:
                    logger.debug(f"Error shutting down kernel: {e}")
                    diagnostics.append(f"Error shutting down kernel: {e}")

                try:
                    km.cleanup_resources()
                    logger.debug(f"Cleaned up resources of kernel '{handle.kernel}'")
                except Exception as e:
                    logger.debug(f"Error cleaning up resources: {e}")
                    diagnostics.append(f"Error cleaning up kernel resources: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error during kernel cleanup: {e}")
            diagnostics.append(f"Unexpected error during kernel cleanup: {e}")
        return diagnostics

