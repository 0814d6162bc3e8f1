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
Installed server metadata.

The internal directory holds exactly one executable (frida-server) and one
single line record (server-info.txt) of the form "<version> (<arch>)". The
record is written last in a successful install and removed together with the
binary before a replacement.
"""

import os
from pathlib import Path
from typing import Optional

from .index import log_message

MANUAL_INSTALL_PREFIX = "Manual Installation"
UNKNOWN_VERSION = "Unknown version"


class ServerInfoStore:
    """Paths and metadata for the installed server binary."""

    def __init__(self, internal_dir: str, binary_name: str = "frida-server",
                 info_file: str = "server-info.txt"):
        self.internal_dir = Path(internal_dir)
        self.binary_name = binary_name
        self.info_file = info_file

    @property
    def binary_path(self) -> Path:
        return self.internal_dir / self.binary_name

    @property
    def info_path(self) -> Path:
        return self.internal_dir / self.info_file

    def ensure_dir(self) -> Path:
        self.internal_dir.mkdir(parents=True, exist_ok=True)
        return self.internal_dir

    def is_server_installed(self) -> bool:
        """An installed server is a binary that exists AND carries the executable bit."""
        path = self.binary_path
        return path.is_file() and os.access(path, os.X_OK)

    def read(self) -> Optional[str]:
        """
        Read the metadata record.

        Returns:
            str: The recorded "<version> (<arch>)" line, "Unknown version" if the
                 record exists but cannot be read, or None when nothing is installed
        """
        if not (self.binary_path.exists() and self.info_path.exists()):
            return None
        try:
            with open(self.info_path, 'r') as f:
                return f.readline().strip()
        except Exception as e:
            log_message(f"Failed to read {self.info_path}: {e}", "WARNING")
            return UNKNOWN_VERSION

    def write(self, version: str, arch: str) -> bool:
        """Persist the version/arch pair. Returns False on failure; never raises."""
        try:
            self.ensure_dir()
            with open(self.info_path, 'w') as f:
                f.write(f"{version} ({arch})")
            return True
        except Exception as e:
            log_message(f"Failed to save server info: {e}", "ERROR")
            return False

    def remove(self) -> None:
        """Delete the binary and its record if present."""
        for path in (self.binary_path, self.info_path):
            try:
                path.unlink()
                log_message(f"Removed {path}", "DEBUG")
            except FileNotFoundError:
                pass


def describe_server_type(info: Optional[str]) -> str:
    """
    Derive the "current server type" label from the metadata record.

    Recomputed on every call from the file contents instead of being cached.
    """
    if info is None:
        return "Not installed"
    if info.startswith(MANUAL_INSTALL_PREFIX):
        return info
    return f"Downloaded: {info}"
