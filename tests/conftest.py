"""Pytest configuration and fixtures.

Kernels are replaced by the fakes in `kernel_fakes`, so no test needs a
running Jupyter kernel unless it is marked with `kernel`.
"""

import pytest

from ipyjob.core.code_unit import SourceFormat
from ipyjob.core.execution_config import ExecutionConfig, SourceMode
from ipyjob.interpreter.session import InterpreterSession
from kernel_fakes import FakeClient, FakeKernelManager


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user, project and environment configuration out of the tests."""
    for var in [
        "IPYJOB_KERNEL",
        "IPYJOB_DEFAULT_KERNEL",
        "IPYJOB_SERVERS",
        "IPYJOB_LOGGING__LOG_LEVEL",
        "IPYJOB_LOGGING__CONSOLE_LOGGING",
        "IPYJOB_PATHS__WORKSPACE_PATH",
        "IPYJOB_PATHS__ARTIFACT_DIR",
        "IPYJOB_PATHS__REPORT_FILE",
        "WORKSPACE",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "platformdirs.user_config_dir", lambda *args, **kwargs: str(tmp_path / "user-config")
    )
    monkeypatch.setattr(
        "platformdirs.user_log_dir", lambda *args, **kwargs: str(tmp_path / "user-logs")
    )


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_km(fake_client):
    return FakeKernelManager(fake_client)


@pytest.fixture
def session(fake_km):
    return InterpreterSession(kernel_manager_factory=fake_km.factory, poll_interval=0.01)


@pytest.fixture
def make_config(workspace):
    def make_config(**kwargs):
        values = dict(
            kernel="python3",
            server_name="Python",
            source_mode=SourceMode.INLINE_TEXT,
            source="print(1)",
            source_format=SourceFormat.TEXT,
            task="test-task",
            workspace=workspace,
        )
        values.update(kwargs)
        return ExecutionConfig(**values)

    return make_config


@pytest.fixture
def sink_lines():
    """A list that doubles as a log sink via its `append` method."""
    return []
