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
Progress events, error kinds and cancellation.

Every install or server start reports through a ProgressReporter. The reporter
forwards InstallProgressEvent values to whatever sink the caller registered and
guarantees that a run ends with exactly one Success or Error.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from .index import log_message


class ErrorKind(str, Enum):
    ENVIRONMENT = "environment"
    RESOLUTION = "resolution"
    TRANSFER = "transfer"
    INTEGRITY = "integrity"
    PERMISSION = "permission"
    PERSISTENCE = "persistence"
    PROCESS = "process"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class InstallerError(Exception):
    """Base exception for installer step failures."""
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class TransferError(InstallerError):
    kind = ErrorKind.TRANSFER


class ExtractionError(InstallerError):
    kind = ErrorKind.INTEGRITY


class ShellTimeoutError(InstallerError):
    kind = ErrorKind.TIMEOUT


class OperationCancelled(InstallerError):
    kind = ErrorKind.CANCELLED


@dataclass(frozen=True)
class Progress:
    message: str


@dataclass(frozen=True)
class DownloadProgress:
    """Bytes received so far; percent and total are None without a content length."""
    percent: Optional[int]
    bytes_downloaded: int
    total_bytes: Optional[int]


@dataclass(frozen=True)
class Success:
    message: str


@dataclass(frozen=True)
class Error:
    message: str
    kind: ErrorKind = ErrorKind.INTERNAL


InstallProgressEvent = Union[Progress, DownloadProgress, Success, Error]
EventSink = Callable[[InstallProgressEvent], None]


def is_terminal(event: InstallProgressEvent) -> bool:
    return isinstance(event, (Success, Error))


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a worker."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")

    def wait(self, seconds: float) -> None:
        """Sleep for up to `seconds`, raising OperationCancelled if cancelled meanwhile."""
        if self._event.wait(seconds):
            raise OperationCancelled("Operation cancelled")


class ProgressReporter:
    """
    Forwards events to a sink and enforces the single terminal event.

    Events after the terminal one are dropped with a debug log line, which is
    what happens to reader output arriving once a start has already reported.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        self._sink = sink
        self._lock = threading.Lock()
        self.terminal: Optional[InstallProgressEvent] = None

    @property
    def finished(self) -> bool:
        return self.terminal is not None

    def emit(self, event: InstallProgressEvent) -> None:
        with self._lock:
            if self.terminal is not None and is_terminal(event):
                log_message(f"Dropping second terminal event: {event}", "DEBUG")
                return
            if is_terminal(event):
                self.terminal = event
        if self._sink is not None:
            try:
                self._sink(event)
            except Exception as e:
                log_message(f"Progress sink raised: {e}", "WARNING")

    def progress(self, message: str) -> None:
        log_message(message)
        self.emit(Progress(message))

    def download(self, percent: Optional[int], downloaded: int, total: Optional[int]) -> None:
        self.emit(DownloadProgress(percent, downloaded, total))

    def success(self, message: str) -> Success:
        log_message(message)
        event = Success(message)
        self.emit(event)
        return event

    def error(self, message: str, kind: ErrorKind = ErrorKind.INTERNAL) -> Error:
        log_message(message, "ERROR")
        event = Error(message, kind)
        self.emit(event)
        return event


class EventCollector:
    """Sink that keeps every event in order; used by the CLI summary and tests."""

    def __init__(self):
        self.events: List[InstallProgressEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: InstallProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    @property
    def messages(self) -> List[str]:
        return [e.message for e in list(self.events) if hasattr(e, "message")]

    def of_type(self, event_type) -> list:
        return [e for e in list(self.events) if isinstance(e, event_type)]


def run_in_background(target: Callable, *args, name: str = "frida-installer", **kwargs) -> Future:
    """
    Run `target` on a dedicated worker thread and return its Future.

    Each call gets its own single worker, so two submitted runs never share
    a thread; ordering between them is up to the caller.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
    try:
        return executor.submit(target, *args, **kwargs)
    finally:
        executor.shutdown(wait=False)
