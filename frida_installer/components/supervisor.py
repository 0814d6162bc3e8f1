"""
frida-server installer
Copyright (C) 2026 The frida-server installer authors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Lifecycle of the privileged frida-server process.

The supervisor owns at most one launch shell at a time. Its stdout and stderr
are drained by two reader threads that forward each line as a Progress event
for as long as the server runs. stop() tears the process down, sweeps any
same-named process started elsewhere (e.g. by an earlier session), and joins
the readers before closing the pipes.
"""

import subprocess
import threading
import time
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

from frida_installer.utils.events import (
    CancellationToken,
    ErrorKind,
    EventSink,
    InstallerError,
    InstallProgressEvent,
    OperationCancelled,
    ProgressReporter,
    run_in_background,
)
from frida_installer.utils.index import log_message
from frida_installer.utils.server_info import ServerInfoStore, describe_server_type
from frida_installer.utils.shell import RootShell, ShellCommand


class StreamForwarder(threading.Thread):
    """Forwards each line of one output stream until EOF or cancel()."""

    def __init__(self, stream, label: str, reporter: ProgressReporter):
        super().__init__(name=f"frida-server-{label.lower()}", daemon=True)
        self.stream = stream
        self.label = label
        self.reporter = reporter
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def run(self) -> None:
        try:
            for line in iter(self.stream.readline, ''):
                if self._cancelled.is_set():
                    return
                self.reporter.progress(f"[{self.label}] {line.rstrip()}")
            self.reporter.progress(f"[{self.label}] Stream ended")
        except (OSError, ValueError) as e:
            if not self._cancelled.is_set():
                self.reporter.progress(f"Error reading {self.label.lower()}: {e}")


class ServerSupervisor:
    def __init__(self, store: ServerInfoStore, shell: RootShell, working_dir: str = "/data/local/tmp",
                 listen_host: str = "0.0.0.0", listen_port: int = 27042, settle_delay: float = 3,
                 stop_grace: float = 1, sweep_delay: float = 1, reader_join: float = 2):
        self.store = store
        self.shell = shell
        self.working_dir = working_dir
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.settle_delay = settle_delay
        self.stop_grace = stop_grace
        self.sweep_delay = sweep_delay
        self.reader_join = reader_join
        self._process: Optional[subprocess.Popen] = None
        self._readers: List[StreamForwarder] = []

    @classmethod
    def from_config(cls, store: ServerInfoStore, shell: RootShell, config: Dict[str, Any]) -> 'ServerSupervisor':
        c = config["config"]
        timeouts = c["timeouts"]
        return cls(
            store,
            shell,
            working_dir=c["directories"]["working_dir"],
            listen_host=c["server"]["listen_host"],
            listen_port=c["server"]["listen_port"],
            settle_delay=timeouts["settle_delay"],
            stop_grace=timeouts["stop_grace"],
            sweep_delay=timeouts["sweep_delay"],
            reader_join=timeouts["reader_join"],
        )

    @property
    def process_name(self) -> str:
        return self.store.binary_name

    @property
    def process(self) -> Optional[subprocess.Popen]:
        return self._process

    def is_managed_process_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self, reporter: ProgressReporter, token: Optional[CancellationToken] = None) -> InstallProgressEvent:
        """
        Launch the installed server and report whether it came up.

        Output keeps flowing to the reporter after the terminal event.
        """
        token = token or CancellationToken()
        binary = self.store.binary_path
        if not binary.exists():
            return reporter.error("Frida server not found. Please install it first.", ErrorKind.PROCESS)

        try:
            reporter.progress("Stopping any existing Frida server...")
            self.stop()
            token.raise_if_cancelled()

            server_type = describe_server_type(self.store.read())
            reporter.progress(f"Starting Frida server: {server_type}")
            reporter.progress(f"Server will listen on {self.listen_host}:{self.listen_port}")
            reporter.progress("Real-time output will be shown below:")

            command = ShellCommand.launch(self.working_dir, str(binary), self.listen_host, self.listen_port)
            process = self.shell.spawn(command)
            self._process = process
            self._readers = [
                StreamForwarder(process.stdout, "STDOUT", reporter),
                StreamForwarder(process.stderr, "STDERR", reporter),
            ]
            for reader in self._readers:
                reader.start()

            # spawn and bind are not observable through the shell; give it time
            token.wait(self.settle_delay)

            if self.status():
                return reporter.success(
                    "✓ Frida server started successfully! Output will continue to be displayed in real-time.")
            return reporter.error("✗ Failed to start Frida server. Check output above for errors.", ErrorKind.PROCESS)

        except OperationCancelled:
            self.stop()
            return reporter.error("Server start cancelled", ErrorKind.CANCELLED)
        except InstallerError as e:
            return reporter.error(f"Failed to start server: {e}", e.kind)
        except Exception as e:
            log_message(f"Unexpected error starting server: {e}", "ERROR")
            return reporter.error(f"Failed to start server: {e}", ErrorKind.PROCESS)

    def start_in_background(self, sink: Optional[EventSink] = None,
                            token: Optional[CancellationToken] = None) -> Future:
        return run_in_background(self.start, ProgressReporter(sink), token, name="frida-server-start")

    def stop(self) -> None:
        """
        Best-effort stop: terminate, grace period, kill, then pkill sweep.

        The tracked handle is always cleared, even when a step fails.
        """
        process = self._process
        try:
            if process is not None and process.poll() is None:
                self._terminate(process)
        except Exception as e:
            log_message(f"Failed to terminate managed server: {e}", "ERROR")

        try:
            result = self.shell.run(ShellCommand.pkill(self.process_name))
            log_message(f"pkill {self.process_name} exit code: {result.exit_code}", "DEBUG")
            if self.sweep_delay:
                time.sleep(self.sweep_delay)
        except Exception as e:
            log_message(f"Failed to stop server: {e}", "ERROR")
        finally:
            self._release(process)
            self._process = None

    def _terminate(self, process: subprocess.Popen) -> None:
        log_message("Terminating managed Frida server", "DEBUG")
        process.terminate()
        try:
            process.wait(timeout=self.stop_grace)
        except subprocess.TimeoutExpired:
            log_message("Managed Frida server ignored SIGTERM, killing", "WARNING")
            process.kill()
            process.wait(timeout=self.stop_grace)

    def _release(self, process: Optional[subprocess.Popen]) -> None:
        readers, self._readers = self._readers, []
        for reader in readers:
            reader.cancel()
        for reader in readers:
            reader.join(timeout=self.reader_join)
            if reader.is_alive():
                log_message(f"{reader.name} still blocked on its pipe; leaving it to exit with the process",
                            "WARNING")
        if process is None:
            return
        # a pipe still being read cannot be closed without blocking on its lock
        busy = {id(reader.stream) for reader in readers if reader.is_alive()}
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is None or id(stream) in busy:
                continue
            try:
                stream.close()
            except (OSError, ValueError) as e:
                log_message(f"Failed to close server pipe: {e}", "DEBUG")

    def status(self) -> bool:
        """True iff pgrep finds a process with the server's name."""
        try:
            result = self.shell.run(ShellCommand.pgrep(self.process_name))
        except Exception as e:
            log_message(f"Failed to check server status: {e}", "ERROR")
            return False
        log_message(f"Server check PID: {result.first_line}", "DEBUG")
        return result.ok and bool(result.first_line and result.first_line.strip())
