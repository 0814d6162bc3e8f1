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
Privileged shell channel.

Every privileged operation is expressed as a ShellCommand and submitted to a
freshly spawned superuser shell. ShellCommand.render() is the only place that
produces literal shell syntax, so the full command surface is visible here:

    id                                   identity check
    chmod 755 <path>                     grant execute rights
    pkill <name>                         sweep running servers
    pgrep <name>                         status query
    cd <dir> && <binary> -l <host>:<port>  launch
"""

import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from .events import ErrorKind, InstallerError, ShellTimeoutError
from .index import log_message

ROOT_IDENTITY_MARKER = "uid=0"
EXIT_COMMAND = "exit"


class CommandKind(str, Enum):
    IDENTITY = "identity"
    CHMOD = "chmod"
    PKILL = "pkill"
    PGREP = "pgrep"
    LAUNCH = "launch"


@dataclass(frozen=True)
class ShellCommand:
    """One privileged operation, serialised to shell text by render()."""
    kind: CommandKind
    args: Tuple[str, ...] = ()

    @classmethod
    def identity(cls) -> 'ShellCommand':
        return cls(CommandKind.IDENTITY)

    @classmethod
    def chmod(cls, path: str, mode: Union[str, int] = 0o755) -> 'ShellCommand':
        # Accept both "755" and 0o755
        if isinstance(mode, str):
            mode = int(mode, 8)
        return cls(CommandKind.CHMOD, (oct(mode)[2:], str(path)))

    @classmethod
    def pkill(cls, name: str) -> 'ShellCommand':
        return cls(CommandKind.PKILL, (name,))

    @classmethod
    def pgrep(cls, name: str) -> 'ShellCommand':
        return cls(CommandKind.PGREP, (name,))

    @classmethod
    def launch(cls, working_dir: str, binary: str, host: str, port: int) -> 'ShellCommand':
        return cls(CommandKind.LAUNCH, (str(working_dir), str(binary), f"{host}:{port}"))

    def render(self) -> str:
        q = shlex.quote
        if self.kind == CommandKind.IDENTITY:
            return "id"
        if self.kind == CommandKind.CHMOD:
            mode, path = self.args
            return f"chmod {mode} {q(path)}"
        if self.kind == CommandKind.PKILL:
            return f"pkill {q(self.args[0])}"
        if self.kind == CommandKind.PGREP:
            return f"pgrep {q(self.args[0])}"
        if self.kind == CommandKind.LAUNCH:
            working_dir, binary, address = self.args
            return f"cd {q(working_dir)} && {q(binary)} -l {q(address)}"
        raise ValueError(f"Unknown shell command kind: {self.kind}")


@dataclass
class ShellResult:
    exit_code: int
    first_line: Optional[str]
    stderr: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RootShell:
    """Spawns one superuser shell per operation; sessions are never reused."""

    def __init__(self, su_binary: str = "su", timeout: float = 30):
        self.su_binary = su_binary
        self.timeout = timeout

    def _spawn(self) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                [self.su_binary],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise InstallerError(f"Failed to spawn {self.su_binary}: {e}", ErrorKind.ENVIRONMENT)

    def run(self, command: ShellCommand, timeout: Optional[float] = None) -> ShellResult:
        """
        Submit a command followed by an explicit exit and wait for the shell.

        Args:
            command: The privileged operation to run
            timeout: Seconds to wait for the shell; defaults to the channel timeout

        Returns:
            ShellResult: Exit status, first stdout line and stderr lines

        Raises:
            ShellTimeoutError: The shell did not exit in time (it is killed)
            InstallerError: The shell could not be spawned
        """
        text = command.render()
        log_message(f"[su] {text}", "DEBUG")
        process = self._spawn()
        try:
            stdout, stderr = process.communicate(f"{text}\n{EXIT_COMMAND}\n",
                                                 timeout=timeout or self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise ShellTimeoutError(f"Privileged command timed out: {text}")

        lines = stdout.splitlines()
        result = ShellResult(
            exit_code=process.returncode,
            first_line=lines[0] if lines else None,
            stderr=stderr.splitlines(),
        )
        log_message(f"[su] {command.kind.value} exit code: {result.exit_code}", "DEBUG")
        return result

    def spawn(self, command: ShellCommand) -> subprocess.Popen:
        """Start a long running command; no exit terminator is sent."""
        text = command.render()
        log_message(f"[su] {text}", "DEBUG")
        process = self._spawn()
        try:
            process.stdin.write(f"{text}\n")
            process.stdin.flush()
        except OSError as e:
            process.kill()
            raise InstallerError(f"Failed to submit command to {self.su_binary}: {e}", ErrorKind.PROCESS)
        return process

    def check_root(self) -> bool:
        """
        Check that the superuser shell is usable.

        Advisory only: gates the install flow, not a trust decision. Never raises.

        Returns:
            bool: True iff the shell exits 0 and reports the root identity
        """
        try:
            result = self.run(ShellCommand.identity())
            log_message(f"Root check output: {result.first_line}", "DEBUG")
            return result.ok and result.first_line is not None and ROOT_IDENTITY_MARKER in result.first_line
        except Exception as e:
            log_message(f"Root check failed: {e}", "ERROR")
            return False

    def chmod(self, path: str, mode: Union[str, int] = 0o755) -> bool:
        """Apply a mode through the root shell; True if the shell reported success."""
        result = self.run(ShellCommand.chmod(path, mode))
        for line in result.stderr:
            log_message(f"chmod error: {line}", "ERROR")
        return result.ok
