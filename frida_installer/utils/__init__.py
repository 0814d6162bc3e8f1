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
Utilities shared by the installer components.
"""

from .index import log_message, setup_logging, format_file_size
from .config import load_config, apply_overrides, get_debug_mode
from .events import (
    ErrorKind,
    InstallerError,
    TransferError,
    ExtractionError,
    ShellTimeoutError,
    OperationCancelled,
    Progress,
    DownloadProgress,
    Success,
    Error,
    InstallProgressEvent,
    CancellationToken,
    ProgressReporter,
    EventCollector,
    run_in_background,
)
from .shell import CommandKind, ShellCommand, ShellResult, RootShell
from .server_info import ServerInfoStore, describe_server_type

__all__ = [
    'log_message',
    'setup_logging',
    'format_file_size',
    'load_config',
    'apply_overrides',
    'get_debug_mode',
    'ErrorKind',
    'InstallerError',
    'TransferError',
    'ExtractionError',
    'ShellTimeoutError',
    'OperationCancelled',
    'Progress',
    'DownloadProgress',
    'Success',
    'Error',
    'InstallProgressEvent',
    'CancellationToken',
    'ProgressReporter',
    'EventCollector',
    'run_in_background',
    'CommandKind',
    'ShellCommand',
    'ShellResult',
    'RootShell',
    'ServerInfoStore',
    'describe_server_type',
]
