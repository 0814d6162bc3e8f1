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

import platform
import subprocess
from typing import Optional

from frida_installer.utils.index import log_message

# Android ABI -> release asset architecture
ABI_TO_ARCH = {
    "arm64-v8a": "arm64",
    "armeabi-v7a": "arm",
    "x86": "x86",
    "x86_64": "x86_64",
}

# Kernel machine name -> Android ABI, for hosts without getprop
MACHINE_TO_ABI = {
    "aarch64": "arm64-v8a",
    "arm64": "arm64-v8a",
    "armv7l": "armeabi-v7a",
    "armv8l": "armeabi-v7a",
    "i686": "x86",
    "i386": "x86",
    "x86_64": "x86_64",
    "amd64": "x86_64",
}


def resolve_arch(raw_abi: str) -> str:
    """
    Map a device ABI to the architecture used in release asset names.

    Unknown ABIs are returned unchanged; the asset lookup then fails for them.
    """
    return ABI_TO_ARCH.get(raw_abi, raw_abi)


def _read_getprop(timeout: float = 5) -> Optional[str]:
    try:
        result = subprocess.run(["getprop", "ro.product.cpu.abi"], capture_output=True,
                                text=True, timeout=timeout, check=False)
    except (OSError, subprocess.TimeoutExpired) as e:
        log_message(f"getprop unavailable: {e}", "DEBUG")
        return None
    value = result.stdout.strip()
    if result.returncode != 0 or not value:
        return None
    return value


def get_device_abi() -> str:
    """Detect the device ABI, preferring the Android system property."""
    abi = _read_getprop()
    if abi:
        log_message(f"Device ABI: {abi}", "DEBUG")
        return abi
    machine = platform.machine()
    abi = MACHINE_TO_ABI.get(machine.lower(), machine)
    log_message(f"Device ABI from machine type {machine}: {abi}", "DEBUG")
    return abi
