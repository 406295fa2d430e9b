"""Tests for kernel sessions, using in-process fake kernels."""

import base64

import pytest
import zmq

from ipyjob.core.code_unit import CodeUnit
from ipyjob.core.errors import (
    ConnectError,
    ExecutionTimeoutError,
    FaultError,
    RunCancelled,
    TransportError,
)
from ipyjob.core.results import UnitOutcome
from ipyjob.interpreter.session import (
    HandleState,
    InterpreterHandle,
    InterpreterSession,
    OutputCollector,
)
from kernel_fakes import (
    HANG,
    FakeClient,
    FakeKernelManager,
    display_data,
    error,
    execute_result,
    stream,
)


class TestOutputCollector:
    def test_partial_lines_are_joined(self):
        lines = []
        collector = OutputCollector(10, lines.append)

        collector.add_text("hel")
        collector.add_text("lo\nwor")
        collector.add_text("ld")
        collector.flush()

        assert lines == ["hello", "world"]
        assert collector.text == "hello\nworld"

    def test_lines_beyond_limit_are_dropped(self):
        collector = OutputCollector(2)

        collector.add_text("1\n2\n3\n4\n")

        assert collector.lines == ["1", "2"]
        assert collector.truncated

    def test_zero_limit_keeps_nothing(self):
        collector = OutputCollector(0)

        collector.add_block("result")

        assert collector.lines == []
        assert collector.truncated

    def test_block_flushes_pending_text(self):
        collector = OutputCollector(10)

        collector.add_text("partial")
        collector.add_block("42")

        assert collector.lines == ["partial", "42"]


class TestConnect:
    def test_handle_creation_does_no_io(self, make_config):
        handle = InterpreterHandle(make_config())

        assert handle.state == HandleState.CREATED
        assert handle.client is None

    def test_connect_starts_kernel_and_waits(self, session, make_config, fake_km, fake_client, workspace):
        handle = session.connect(make_config(launch_timeout=12))

        assert handle.state == HandleState.CONNECTED
        assert fake_km.kernel_name == "python3"
        assert fake_km.launch_kwargs == {"cwd": str(workspace)}
        assert fake_client.calls == ["start_channels", "wait_for_ready"]
        assert fake_client.ready_timeout == 12

    def test_unknown_kernel(self, session, make_config):
        with pytest.raises(ConnectError, match="no kernel spec named 'scala'"):
            session.connect(make_config(kernel="scala"))

    def test_kernel_not_ready_in_time(self, fake_km, make_config):
        fake_km._client.ready_error = RuntimeError("Kernel didn't respond in 1 seconds")
        session = InterpreterSession(kernel_manager_factory=fake_km.factory)

        with pytest.raises(ConnectError, match="not ready within 1 seconds") as exc_info:
            session.connect(make_config(launch_timeout=1))

        assert exc_info.value.kernel == "python3"
        # The half-started kernel is released again
        assert fake_km.calls[-2:] == ["shutdown_kernel", "cleanup_resources"]
        assert fake_km._client.calls[-1] == "stop_channels"

    def test_connection_refused(self, fake_km, make_config):
        fake_km._client.ready_error = zmq.ZMQError(msg="Connection refused")
        session = InterpreterSession(kernel_manager_factory=fake_km.factory)

        with pytest.raises(ConnectError, match="connection refused"):
            session.connect(make_config())

    def test_attach_via_connection_file(self, make_config, tmp_path):
        clients = []

        def client_factory(connection_file):
            client = FakeClient(connection_file=connection_file)
            clients.append(client)
            return client

        def no_kernel_manager(**kwargs):
            raise AssertionError("no kernel must be started")

        session = InterpreterSession(
            kernel_manager_factory=no_kernel_manager, client_factory=client_factory
        )
        connection_file = tmp_path / "kernel-1.json"

        handle = session.connect(make_config(connection_file=connection_file))

        assert not handle.owns_kernel
        assert clients[0].connection_file == str(connection_file)
        assert clients[0].calls[0] == "load_connection_file"

    def test_artifact_store_is_created_for_artifact_dir(self, session, make_config, tmp_path):
        handle = session.connect(make_config(artifact_dir=tmp_path / "artifacts"))

        assert handle.artifacts.directory == tmp_path / "artifacts" / "test-task"


class TestExecute:
    def test_stream_output_is_collected(self, session, make_config, fake_client):
        fake_client.responses["print(1)"] = [stream("1\n"), stream("2\n", name="stderr")]
        handle = session.connect(make_config())
        seen = []

        result = session.execute(handle, CodeUnit(0, "print(1)"), "t", on_output=seen.append)

        assert result.output_text == "1\n2"
        assert seen == ["1", "2"]
        assert result.outcome == UnitOutcome.SUCCESS
        assert not result.truncated
        assert handle.state == HandleState.CONNECTED

    def test_messages_of_other_requests_are_ignored(self, session, make_config, fake_client):
        handle = session.connect(make_config())

        result = session.execute(handle, CodeUnit(0, "pass"), "t")

        assert "noise" not in result.output_text

    def test_execute_result_text(self, session, make_config, fake_client):
        fake_client.responses["1 + 1"] = [execute_result({"text/plain": "2"})]
        handle = session.connect(make_config())

        assert session.execute(handle, CodeUnit(3, "1 + 1"), "t").output_text == "2"

    def test_output_is_truncated_at_max_results(self, session, make_config, fake_client):
        fake_client.responses["loop"] = [stream("".join(f"{i}\n" for i in range(10)))]
        handle = session.connect(make_config(max_results=3))

        result = session.execute(handle, CodeUnit(0, "loop"), "t")

        assert result.output_lines == ["0", "1", "2"]
        assert result.truncated

    def test_fault_raises_with_partial_result(self, session, make_config, fake_client):
        fake_client.responses["1/0"] = [
            stream("before\n"),
            error(
                "ZeroDivisionError",
                "division by zero",
                ["\x1b[0;31mZeroDivisionError\x1b[0m: division by zero"],
            ),
        ]
        handle = session.connect(make_config())

        with pytest.raises(FaultError) as exc_info:
            session.execute(handle, CodeUnit(5, "1/0"), "t")

        fault = exc_info.value
        assert fault.ename == "ZeroDivisionError"
        assert fault.result.sequence_number == 5
        assert fault.result.outcome == UnitOutcome.FAULT
        assert fault.result.output_lines == ["before", "ZeroDivisionError: division by zero"]
        assert fault.result.error == "ZeroDivisionError: division by zero"

    def test_rich_output_is_saved_as_artifact(self, session, make_config, fake_client, tmp_path):
        png = base64.b64encode(b"png-bytes").decode()
        fake_client.responses["plot()"] = [display_data({"image/png": png, "text/plain": "<Figure>"})]
        handle = session.connect(make_config(artifact_dir=tmp_path / "artifacts"))

        result = session.execute(handle, CodeUnit(1, "plot()"), "t")

        saved = tmp_path / "artifacts" / "test-task" / "unit-1-1.png"
        assert saved.read_bytes() == b"png-bytes"
        assert result.output_text == "[saved unit-1-1.png]"

    def test_rich_output_without_artifact_dir_uses_plain_text(self, session, make_config, fake_client):
        png = base64.b64encode(b"png-bytes").decode()
        fake_client.responses["plot()"] = [display_data({"image/png": png, "text/plain": "<Figure>"})]
        handle = session.connect(make_config())

        assert session.execute(handle, CodeUnit(1, "plot()"), "t").output_text == "<Figure>"

    def test_unwritable_artifact_dir_falls_back_to_plain_text(
        self, session, make_config, fake_client, tmp_path
    ):
        blocker = tmp_path / "artifacts"
        blocker.write_text("not a directory", encoding="utf-8")
        fake_client.responses["show()"] = [
            display_data({"text/html": "<b>table</b>", "text/plain": "<Table>"})
        ]
        handle = session.connect(make_config(artifact_dir=blocker))

        result = session.execute(handle, CodeUnit(1, "show()"), "t")

        assert result.outcome == UnitOutcome.SUCCESS
        assert result.output_text == "<Table>"
        assert handle.artifacts.saved == []

    def test_invalid_base64_image_falls_back_to_plain_text(
        self, session, make_config, fake_client, tmp_path
    ):
        fake_client.responses["plot()"] = [display_data({"image/png": "x", "text/plain": "<Figure>"})]
        handle = session.connect(make_config(artifact_dir=tmp_path / "artifacts"))

        result = session.execute(handle, CodeUnit(1, "plot()"), "t")

        assert result.outcome == UnitOutcome.SUCCESS
        assert result.output_text == "<Figure>"
        assert not (tmp_path / "artifacts" / "test-task" / "unit-1-1.png").exists()

    def test_execution_timeout(self, session, make_config, fake_client, fake_km):
        fake_client.responses["sleep"] = [stream("working\n"), HANG]
        handle = session.connect(make_config(execution_timeout=0.05))

        with pytest.raises(ExecutionTimeoutError) as exc_info:
            session.execute(handle, CodeUnit(0, "sleep"), "t")

        assert exc_info.value.result.output_text == "working"
        assert exc_info.value.result.outcome == UnitOutcome.FAULT
        assert "interrupt_kernel" in fake_km.calls

    def test_dead_kernel_is_a_transport_error(self, session, make_config, fake_client, fake_km):
        fake_client.responses["crash"] = [HANG]
        handle = session.connect(make_config())
        fake_km.alive = False

        with pytest.raises(TransportError, match="died"):
            session.execute(handle, CodeUnit(0, "crash"), "t")

    def test_cancellation_interrupts_kernel(self, make_config, fake_client, fake_km):
        fake_client.responses["long"] = [stream("started\n"), HANG]
        session = InterpreterSession(kernel_manager_factory=fake_km.factory, poll_interval=0.01)
        handle = session.connect(make_config())

        def cancel_on_output(line):
            if line == "started":
                session.cancel_event.set()

        with pytest.raises(RunCancelled):
            session.execute(handle, CodeUnit(0, "long"), "t", on_output=cancel_on_output)

        assert "interrupt_kernel" in fake_km.calls

    def test_execute_on_closed_handle(self, session, make_config):
        handle = session.connect(make_config())
        session.close(handle)

        with pytest.raises(TransportError):
            session.execute(handle, CodeUnit(0, "1"), "t")


class TestClose:
    def test_close_releases_kernel(self, session, make_config, fake_km, fake_client):
        handle = session.connect(make_config())

        assert session.close(handle) == []

        assert handle.state == HandleState.CLOSED
        assert fake_client.calls[-1] == "stop_channels"
        assert fake_km.calls[-2:] == ["shutdown_kernel", "cleanup_resources"]

    def test_close_is_idempotent(self, session, make_config, fake_km):
        handle = session.connect(make_config())

        session.close(handle)
        session.close(handle)

        assert fake_km.calls.count("shutdown_kernel") == 1

    def test_close_of_unconnected_handle(self, session, make_config):
        assert session.close(InterpreterHandle(make_config())) == []

    def test_close_never_raises(self, session, make_config, fake_km):
        handle = session.connect(make_config())

        def fail(now=False):
            raise OSError("process already gone")

        fake_km.shutdown_kernel = fail

        diagnostics = session.close(handle)

        assert diagnostics == ["Error shutting down kernel: process already gone"]
        assert "cleanup_resources" in fake_km.calls
        assert handle.state == HandleState.CLOSED
