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
Installer components: release lookup, transfer, extraction, validation,
install orchestration and server supervision.
"""

from .architecture import resolve_arch, get_device_abi
from .releases import Asset, ReleaseDescriptor, ReleaseFeed, find_asset, parse_release
from .transfer import TransferEngine
from .decompressor import Decompressor
from .validator import BinaryValidator, ValidationVerdict
from .supervisor import ServerSupervisor
from .installer import FridaInstaller

__all__ = [
    'resolve_arch',
    'get_device_abi',
    'Asset',
    'ReleaseDescriptor',
    'ReleaseFeed',
    'find_asset',
    'parse_release',
    'TransferEngine',
    'Decompressor',
    'BinaryValidator',
    'ValidationVerdict',
    'ServerSupervisor',
    'FridaInstaller',
]
