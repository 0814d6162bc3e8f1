#!/usr/bin/env python3
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

import argparse
import json
import sys
import threading
from typing import Optional

from .components.installer import FridaInstaller
from .components.releases import ReleaseDescriptor, find_asset
from .utils.config import apply_overrides, get_debug_mode, load_config
from .utils.events import (
    CancellationToken,
    DownloadProgress,
    Error,
    InstallProgressEvent,
    Success,
)
from .utils.index import format_file_size, log_message, setup_logging


class ConsoleSink:
    """Renders progress events as log lines; download progress every 10%."""

    def __init__(self):
        self._last_decile = -1
        self._last_unknown_mb = -1

    def __call__(self, event: InstallProgressEvent) -> None:
        if isinstance(event, DownloadProgress):
            if event.percent is not None:
                decile = event.percent // 10
                if decile != self._last_decile:
                    self._last_decile = decile
                    log_message(f"Downloaded {event.percent}% "
                                f"({format_file_size(event.bytes_downloaded)} of {format_file_size(event.total_bytes)})")
            else:
                mb = event.bytes_downloaded // (1024 * 1024)
                if mb != self._last_unknown_mb:
                    self._last_unknown_mb = mb
                    log_message(f"Downloaded {format_file_size(event.bytes_downloaded)}")
        elif isinstance(event, Error):
            log_message(f"[{event.kind.value}] {event.message}", "DEBUG")


def _wait(future, token: CancellationToken) -> InstallProgressEvent:
    try:
        return future.result()
    except KeyboardInterrupt:
        log_message("Cancelling...", "WARNING")
        token.cancel()
        return future.result()


def _exit_code(event: Optional[InstallProgressEvent]) -> int:
    return 0 if isinstance(event, Success) else 1


def _select_release(installer: FridaInstaller, tag: str) -> Optional[ReleaseDescriptor]:
    for release in installer.list_releases():
        if release.tag_name == tag:
            return release
    return None


def list_releases(installer: FridaInstaller) -> bool:
    releases = installer.list_releases()
    if not releases:
        log_message("No releases with Android server assets found", "WARNING")
        return False
    arch = installer.get_device_architecture()
    for release in releases:
        marker = "" if find_asset(release, arch, installer.asset_template) else f"  (no {arch} asset)"
        log_message(f"  {release.display_name:<24} {release.published_at}{marker}")
    return True


def show_info(installer: FridaInstaller) -> bool:
    log_message(f"Installed: {'yes' if installer.is_server_installed() else 'no'}")
    log_message(f"Server type: {installer.get_current_server_type()}")
    log_message(f"Binary path: {installer.store.binary_path}")
    log_message(f"Running: {'yes' if installer.supervisor.status() else 'no'}")
    return True


def run_server(installer: FridaInstaller) -> int:
    """Start the server and follow its output until interrupted."""
    token = CancellationToken()
    future = installer.supervisor.start_in_background(ConsoleSink(), token)
    result = _wait(future, token)
    if not isinstance(result, Success):
        installer.supervisor.stop()
        return 1
    log_message("Press Ctrl-C to stop the server")
    try:
        while installer.supervisor.is_managed_process_alive():
            threading.Event().wait(1)
        log_message("Frida server exited", "WARNING")
    except KeyboardInterrupt:
        log_message("Stopping Frida server...")
    installer.supervisor.stop()
    log_message("Frida server stopped")
    return 0


def main(argv=None):
    """
    Main entry point for the frida-server installer.
    """
    parser = argparse.ArgumentParser(description="Install and supervise frida-server on a rooted device")
    parser.add_argument("--install", action="store_true",
                        help="Install the latest release (skipped if a server is already installed)")
    parser.add_argument("--release", metavar="TAG", dest="release_tag",
                        help="Install a specific release tag")
    parser.add_argument("--file", metavar="PATH",
                        help="Install from a local .xz/.gz/.zip or raw binary")
    parser.add_argument("--force", action="store_true",
                        help="Download again even if a server is installed")
    parser.add_argument("--list-releases", action="store_true",
                        help="List releases that ship Android server binaries")
    parser.add_argument("--check", action="store_true",
                        help="Check whether a newer release is available")
    parser.add_argument("--start", action="store_true",
                        help="Start the server and follow its output")
    parser.add_argument("--stop", action="store_true",
                        help="Stop any running server")
    parser.add_argument("--status", action="store_true",
                        help="Report whether a server process is running")
    parser.add_argument("--info", action="store_true",
                        help="Show the installed server")
    parser.add_argument("--config", action="store_true",
                        help="Print the effective configuration")
    parser.add_argument("--config-file", metavar="PATH",
                        help="Alternative index.json")
    parser.add_argument("--internal-dir", help="Directory holding the installed binary")
    parser.add_argument("--download-dir", help="Directory for downloaded artifacts")
    parser.add_argument("--su", dest="su_binary", help="Superuser shell binary (default: su)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    args = parser.parse_args(argv)

    config = apply_overrides(load_config(args.config_file), args.internal_dir, args.download_dir, args.su_binary)
    setup_logging(args.debug or get_debug_mode(config))

    try:
        if args.config:
            print(json.dumps(config, indent=4))
            return 0

        installer = FridaInstaller(config)

        if args.list_releases:
            return 0 if list_releases(installer) else 1

        if args.check:
            result = installer.check_for_update()
            if not result["success"]:
                log_message(f"Update check failed: {result['error']}", "ERROR")
                return 1
            log_message(f"Installed: {result['installed'] or 'nothing'}")
            log_message(f"Latest: {result['latest']}")
            log_message("Update available" if result["update_available"] else "Up to date")
            return 0

        if args.status:
            running = installer.supervisor.status()
            log_message(f"Frida server is {'running' if running else 'not running'}")
            return 0 if running else 1

        if args.stop:
            installer.supervisor.stop()
            log_message("Frida server stopped")
            return 0

        if args.info:
            return 0 if show_info(installer) else 1

        if args.file or args.release_tag or args.install:
            token = CancellationToken()
            sink = ConsoleSink()
            if args.file:
                future = installer.install_manual_file(args.file, sink, token)
            elif args.release_tag:
                release = _select_release(installer, args.release_tag)
                if release is None:
                    log_message(f"Release {args.release_tag} not found or has no Android assets", "ERROR")
                    return 1
                future = installer.install_release(release, sink, args.force, token)
            else:
                future = installer.install_latest(sink, args.force, token)
            result = _wait(future, token)
            code = _exit_code(result)
            if code == 0 and args.start:
                return run_server(installer)
            return code

        if args.start:
            return run_server(installer)

        parser.print_help()
        return 0

    except KeyboardInterrupt:
        log_message("Interrupted by user", "WARNING")
        return 130
    except Exception as e:
        log_message(f"Unhandled error: {e}", "ERROR")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
