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
frida-server installer

Installs, validates and supervises frida-server on a device with superuser
shell access.

Usage:
    from frida_installer import FridaInstaller, EventCollector

    installer = FridaInstaller()
    events = EventCollector()
    result = installer.install_latest(events).result()

    installer.supervisor.start_in_background(print)
"""

from .components.installer import FridaInstaller
from .components.releases import Asset, ReleaseDescriptor
from .components.supervisor import ServerSupervisor
from .utils.events import (
    CancellationToken,
    DownloadProgress,
    Error,
    ErrorKind,
    EventCollector,
    Progress,
    Success,
)

__version__ = "1.0.0"

__all__ = [
    'FridaInstaller',
    'ServerSupervisor',
    'Asset',
    'ReleaseDescriptor',
    'CancellationToken',
    'EventCollector',
    'Progress',
    'DownloadProgress',
    'Success',
    'Error',
    'ErrorKind',
]
