import subprocess
import time
from unittest.mock import MagicMock

import pytest

from frida_installer.components.supervisor import ServerSupervisor
from frida_installer.utils.events import (
    CancellationToken,
    Error,
    ErrorKind,
    InstallerError,
    ProgressReporter,
    Success,
)
from frida_installer.utils.server_info import ServerInfoStore
from frida_installer.utils.shell import CommandKind, ShellResult
from tests.conftest import spawn_python

SERVER_SCRIPT = (
    "import sys, time\n"
    "print('Listening on 0.0.0.0:27042', flush=True)\n"
    "print('warning: selinux permissive', file=sys.stderr, flush=True)\n"
    "time.sleep(30)\n"
)

STUBBORN_SCRIPT = (
    "import signal, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "print('ready', flush=True)\n"
    "time.sleep(30)\n"
)


@pytest.fixture
def store(config):
    directories = config["config"]["directories"]
    store = ServerInfoStore(directories["internal_dir"])
    store.ensure_dir()
    store.binary_path.write_bytes(b"\x7fELF")
    store.binary_path.chmod(0o755)
    store.write("16.1.2", "arm64")
    return store


@pytest.fixture
def pgrep_result():
    return {"value": ShellResult(0, "1234", [])}


@pytest.fixture
def shell(root_shell, pgrep_result):
    def run(command, timeout=None):
        if command.kind == CommandKind.PGREP:
            return pgrep_result["value"]
        return ShellResult(0, None, [])

    root_shell.run.side_effect = run
    return root_shell


@pytest.fixture
def supervisor(store, shell, config):
    supervisor = ServerSupervisor.from_config(store, shell, config)
    yield supervisor
    supervisor.stop()


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestStart:
    """Launching through the shell and forwarding the server's output."""

    def test_should_refuse_without_installed_binary(self, supervisor, store, shell, collector):
        store.binary_path.unlink()

        result = supervisor.start(ProgressReporter(collector))

        assert result == Error("Frida server not found. Please install it first.", ErrorKind.PROCESS)
        shell.spawn.assert_not_called()

    def test_should_start_and_forward_output(self, supervisor, shell, collector, tmp_path):
        process = spawn_python(SERVER_SCRIPT)
        shell.spawn.return_value = process

        result = supervisor.start(ProgressReporter(collector))

        assert isinstance(result, Success)
        assert result.message.startswith("✓ Frida server started successfully!")
        assert "Starting Frida server: Downloaded: 16.1.2 (arm64)" in collector.messages
        assert "Server will listen on 0.0.0.0:27042" in collector.messages
        assert wait_for(lambda: "[STDOUT] Listening on 0.0.0.0:27042" in collector.messages)
        assert wait_for(lambda: "[STDERR] warning: selinux permissive" in collector.messages)
        assert supervisor.is_managed_process_alive()

        launch = shell.spawn.call_args.args[0]
        assert launch.kind == CommandKind.LAUNCH
        assert launch.render().endswith(" -l 0.0.0.0:27042")
        assert launch.args[0] == str(tmp_path)

        supervisor.stop()

        assert process.poll() is not None
        assert supervisor.process is None
        assert not supervisor.is_managed_process_alive()

    def test_should_report_error_when_process_not_found(self, supervisor, shell, pgrep_result, collector):
        shell.spawn.return_value = spawn_python(SERVER_SCRIPT)
        pgrep_result["value"] = ShellResult(1, None, [])

        result = supervisor.start(ProgressReporter(collector))

        assert result == Error("✗ Failed to start Frida server. Check output above for errors.", ErrorKind.PROCESS)

    def test_should_report_spawn_failure(self, supervisor, shell, collector):
        shell.spawn.side_effect = InstallerError("Failed to spawn su", ErrorKind.ENVIRONMENT)

        result = supervisor.start(ProgressReporter(collector))

        assert result == Error("Failed to start server: Failed to spawn su", ErrorKind.ENVIRONMENT)

    def test_should_honour_cancellation(self, supervisor, shell, collector):
        token = CancellationToken()
        token.cancel()

        result = supervisor.start(ProgressReporter(collector), token)

        assert result.kind == ErrorKind.CANCELLED
        shell.spawn.assert_not_called()

    def test_should_stop_previous_process_before_start(self, supervisor, shell, collector):
        first = spawn_python(SERVER_SCRIPT)
        second = spawn_python(SERVER_SCRIPT)
        shell.spawn.side_effect = [first, second]

        supervisor.start(ProgressReporter(collector))
        supervisor.start(ProgressReporter(collector))

        assert first.poll() is not None
        assert supervisor.process is second

    def test_should_start_in_background(self, supervisor, shell, collector):
        shell.spawn.return_value = spawn_python(SERVER_SCRIPT)

        future = supervisor.start_in_background(collector)

        assert isinstance(future.result(timeout=10), Success)


class TestStop:
    def test_should_sweep_when_nothing_is_managed(self, supervisor, shell):
        supervisor.stop()

        kinds = [c.args[0].kind for c in shell.run.call_args_list]
        assert kinds == [CommandKind.PKILL]
        assert supervisor.process is None

    def test_should_kill_process_ignoring_sigterm(self, supervisor, shell, collector):
        process = spawn_python(STUBBORN_SCRIPT)
        assert process.stdout.readline().strip() == "ready"
        shell.spawn.return_value = process
        supervisor.start(ProgressReporter(collector))

        supervisor.stop()

        assert process.poll() is not None

    def test_should_clear_handle_when_stop_fails(self, supervisor, shell, collector):
        process = MagicMock()
        process.poll.return_value = None
        process.terminate.side_effect = OSError("no such process")
        supervisor._process = process

        supervisor.stop()

        assert supervisor.process is None
        process.stdout.close.assert_called_once()

    def test_should_sweep_even_when_terminate_fails(self, supervisor, shell):
        process = MagicMock()
        process.poll.return_value = None
        process.terminate.side_effect = PermissionError(1, "Operation not permitted")
        supervisor._process = process

        supervisor.stop()

        kinds = [c.args[0].kind for c in shell.run.call_args_list]
        assert CommandKind.PKILL in kinds
        assert supervisor.process is None

    def test_should_sweep_when_kill_does_not_finish(self, supervisor, shell):
        process = MagicMock()
        process.poll.return_value = None
        process.wait.side_effect = subprocess.TimeoutExpired("su", 1)
        supervisor._process = process

        supervisor.stop()

        process.kill.assert_called_once()
        kinds = [c.args[0].kind for c in shell.run.call_args_list]
        assert kinds == [CommandKind.PKILL]

    def test_should_clear_handle_when_sweep_fails(self, supervisor, shell):
        shell.run.side_effect = OSError("su vanished")
        supervisor.stop()
        assert supervisor.process is None


class TestStatus:
    def test_should_report_running_server(self, supervisor):
        assert supervisor.status() is True

    @pytest.mark.parametrize("result", [ShellResult(1, None, []), ShellResult(0, "", []), ShellResult(0, None, [])])
    def test_should_report_stopped_server(self, supervisor, pgrep_result, result):
        pgrep_result["value"] = result
        assert supervisor.status() is False

    def test_should_treat_shell_failure_as_stopped(self, supervisor, shell):
        shell.run.side_effect = OSError("su vanished")
        assert supervisor.status() is False
