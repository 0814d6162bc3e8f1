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
Configuration loading for the installer.

The configuration lives in index.json at the package root. When the file is
missing or unreadable the built-in defaults below are used, so a bare checkout
still runs on a device.
"""

import copy
import json
import os
from typing import Any, Dict, Optional

from .index import log_message

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "..", "index.json")

DEFAULT_CONFIG: Dict[str, Any] = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "frida-server"
    },
    "debug": False,
    "config": {
        "directories": {
            "internal_dir": "/data/local/tmp/frida-installer",
            "download_dir": "/sdcard/Download/FridaServerInstaller",
            "working_dir": "/data/local/tmp"
        },
        "server": {
            "binary_name": "frida-server",
            "info_file": "server-info.txt",
            "listen_host": "0.0.0.0",
            "listen_port": 27042
        },
        "installation": {
            "github_api_url": "https://api.github.com/repos/frida/frida/releases/latest",
            "releases_url": "https://api.github.com/repos/frida/frida/releases",
            "per_page": 50,
            "asset_template": "frida-server-{version}-android-{arch}.xz",
            "user_agent": "frida-installer"
        },
        "shell": {
            "su_binary": "su",
            "command_timeout": 30
        },
        "timeouts": {
            "connect": 15,
            "read": 60,
            "settle_delay": 3,
            "stop_grace": 1,
            "sweep_delay": 1,
            "reader_join": 2
        },
        "validation": {
            "min_size": 1024 * 1024,
            "max_size": 50 * 1024 * 1024
        },
        "transfer": {
            "chunk_size": 8192
        }
    }
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from index.json, layered over the defaults.

    Keys missing from the file keep their default value, so a partial
    index.json only needs to name what it changes.

    Args:
        config_path: Alternative path to a JSON configuration file

    Returns:
        dict: Effective configuration
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    path = config_path or CONFIG_PATH
    try:
        with open(path, 'r') as f:
            _merge(config, json.load(f))
    except FileNotFoundError:
        log_message(f"No configuration at {path}, using defaults", "DEBUG")
    except Exception as e:
        log_message(f"Failed to load configuration from {path}: {e}", "WARNING")
    return config


def apply_overrides(config: Dict[str, Any], internal_dir: Optional[str] = None,
                    download_dir: Optional[str] = None, su_binary: Optional[str] = None) -> Dict[str, Any]:
    """Apply command line overrides on top of a loaded configuration."""
    directories = config["config"]["directories"]
    if internal_dir:
        directories["internal_dir"] = internal_dir
    if download_dir:
        directories["download_dir"] = download_dir
    if su_binary:
        config["config"]["shell"]["su_binary"] = su_binary
    return config


def get_debug_mode(config: Dict[str, Any]) -> bool:
    """
    Get the current debug mode from configuration.

    Returns:
        bool: True if debug mode is enabled, False otherwise
    """
    return bool(config.get("debug", False))
