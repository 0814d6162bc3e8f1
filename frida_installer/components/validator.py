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
Heuristic checks for user supplied server files.

Only used for manual installs; artifacts chosen by the release locator are
trusted by construction. Checks run in order and stop at the first failure so
the reported reason names the exact heuristic that rejected the file.
"""

import os
import re
from dataclasses import dataclass
from typing import Optional

from frida_installer.utils.index import format_file_size, log_message

XZ_MAGIC = b"\xfd7zXZ\x00"
ELF_MAGIC = b"\x7fELF"

COMPRESSED_EXTENSIONS = (".xz", ".gz", ".zip")
KNOWN_ARCHITECTURES = ("arm64", "arm", "x86", "aarch64", "x86_64")

DEFAULT_MIN_SIZE = 1024 * 1024
DEFAULT_MAX_SIZE = 50 * 1024 * 1024

# ".txt", ".apk"; not the ".0-android-arm64" tail of a versioned name
_EXTENSION_RE = re.compile(r"\.[a-z0-9]*[a-z][a-z0-9]*$")


@dataclass(frozen=True)
class ValidationVerdict:
    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> 'ValidationVerdict':
        return cls(True)

    @classmethod
    def reject(cls, reason: str) -> 'ValidationVerdict':
        return cls(False, reason)


class BinaryValidator:
    def __init__(self, min_size: int = DEFAULT_MIN_SIZE, max_size: int = DEFAULT_MAX_SIZE):
        self.min_size = min_size
        self.max_size = max_size

    def validate(self, path) -> ValidationVerdict:
        verdict = self._validate(str(path))
        if verdict.accepted:
            log_message(f"Validation passed for {path}", "DEBUG")
        else:
            log_message(f"Validation rejected {path}: {verdict.reason}", "WARNING")
        return verdict

    def _validate(self, path: str) -> ValidationVerdict:
        file_name = os.path.basename(path).lower()

        try:
            size = os.path.getsize(path)
        except OSError:
            return ValidationVerdict.reject("Cannot read file header - file may be corrupted or inaccessible")

        # 1. size bounds
        if size < self.min_size:
            return ValidationVerdict.reject(
                f"File too small ({format_file_size(size)}) - likely not a Frida server binary")
        if size > self.max_size:
            return ValidationVerdict.reject(
                f"File too large ({format_file_size(size)}) - likely not a Frida server binary")

        # 2. name
        if "frida" not in file_name or "server" not in file_name:
            return ValidationVerdict.reject(
                "Filename does not contain 'frida' and 'server' - "
                "expected pattern like 'frida-server-x.x.x-android-arch'")

        # 3. format
        is_xz = file_name.endswith(".xz")
        is_compressed = file_name.endswith(COMPRESSED_EXTENSIONS)
        is_binary = not _EXTENSION_RE.search(file_name) or file_name.endswith(".bin")
        if not is_compressed and not is_binary:
            return ValidationVerdict.reject("Unsupported file format - expected .xz, .gz, .zip, or raw binary")

        # 4. architecture, only when the name claims to be an Android build
        if "android" in file_name and not any(arch in file_name for arch in KNOWN_ARCHITECTURES):
            return ValidationVerdict.reject(
                "No valid Android architecture found in filename (expected: arm64, arm, x86, x86_64)")

        # 5. magic bytes
        if is_xz or is_binary:
            try:
                with open(path, 'rb') as f:
                    header = f.read(16)
            except OSError:
                return ValidationVerdict.reject("Cannot read file header - file may be corrupted or inaccessible")

            if is_xz:
                if len(header) < len(XZ_MAGIC):
                    return ValidationVerdict.reject("Cannot read file header - file may be corrupted or inaccessible")
                if header[:len(XZ_MAGIC)] != XZ_MAGIC:
                    return ValidationVerdict.reject("Invalid XZ file - corrupted or not a valid .xz compressed file")
            if is_binary:
                if len(header) < len(ELF_MAGIC):
                    return ValidationVerdict.reject("Cannot read file header - file may be corrupted or inaccessible")
                if header[:len(ELF_MAGIC)] != ELF_MAGIC:
                    return ValidationVerdict.reject(
                        "Not a valid ELF binary - Frida server should be an ELF executable")

        return ValidationVerdict.accept()
