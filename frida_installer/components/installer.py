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
Install orchestration.

Three entry points share one linear pipeline:

    stop existing -> check root -> detect arch -> resolve source
      -> locate/validate -> download/copy -> extract/place
      -> chmod 755 -> persist metadata -> Success

Each step reports what it is doing and, once done, a confirmation. The first
failing step reports a single Error and nothing after it runs. Entry points
return a Future resolving to the terminal event; the run_* variants do the
same work on the calling thread.

Callers must not run two installs against the same internal directory at
once; nothing here locks.
"""

import os
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from frida_installer.components.architecture import get_device_abi, resolve_arch
from frida_installer.components.decompressor import Decompressor, copy_file, is_compressed
from frida_installer.components.releases import (
    ReleaseDescriptor,
    ReleaseFeed,
    expected_asset_name,
    find_asset,
    is_newer_version,
    version_from_info,
)
from frida_installer.components.supervisor import ServerSupervisor
from frida_installer.components.transfer import TransferEngine
from frida_installer.components.validator import BinaryValidator
from frida_installer.utils.config import load_config
from frida_installer.utils.events import (
    CancellationToken,
    ErrorKind,
    EventSink,
    ExtractionError,
    InstallerError,
    InstallProgressEvent,
    OperationCancelled,
    ProgressReporter,
    TransferError,
    run_in_background,
)
from frida_installer.utils.index import format_file_size, log_message
from frida_installer.utils.server_info import (
    MANUAL_INSTALL_PREFIX,
    UNKNOWN_VERSION,
    ServerInfoStore,
    describe_server_type,
)
from frida_installer.utils.shell import RootShell

MANUAL_ARCH = "Unknown"
SCRATCH_NAME = "temp-server"


class FridaInstaller:
    """Installs frida-server from the release feed or a local file."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, shell: Optional[RootShell] = None,
                 feed: Optional[ReleaseFeed] = None, session: Optional[requests.Session] = None,
                 abi_provider: Optional[Callable[[], str]] = None,
                 supervisor: Optional[ServerSupervisor] = None):
        self.config = config or load_config()
        c = self.config["config"]
        directories = c["directories"]
        server = c["server"]
        timeouts = c["timeouts"]
        http_timeout = (timeouts["connect"], timeouts["read"])

        self.store = ServerInfoStore(directories["internal_dir"], server["binary_name"], server["info_file"])
        self.shell = shell or RootShell(c["shell"]["su_binary"], c["shell"]["command_timeout"])
        self.session = session or requests.Session()
        self.feed = feed or ReleaseFeed(c["installation"], self.session, http_timeout)
        self.transfer = TransferEngine(directories["download_dir"], self.session, http_timeout,
                                       c["transfer"]["chunk_size"])
        self.decompressor = Decompressor(self.store.binary_path)
        self.validator = BinaryValidator(c["validation"]["min_size"], c["validation"]["max_size"])
        self.asset_template = c["installation"]["asset_template"]
        self.abi_provider = abi_provider or get_device_abi
        self.supervisor = supervisor or ServerSupervisor.from_config(self.store, self.shell, self.config)

    # --- Installation state ---
    def is_server_installed(self) -> bool:
        return self.store.is_server_installed()

    def get_installed_server_info(self) -> Optional[str]:
        return self.store.read()

    def get_current_server_type(self) -> str:
        return describe_server_type(self.store.read())

    def get_device_architecture(self) -> str:
        return resolve_arch(self.abi_provider())

    def remove_existing_installation(self, stop_server: bool = True) -> None:
        """Stop the server and delete the binary and its record. Never raises."""
        try:
            if stop_server:
                self.supervisor.stop()
            self.store.remove()
            log_message("Existing Frida installation removed")
        except Exception as e:
            log_message(f"Failed to remove existing installation: {e}", "ERROR")

    def list_releases(self) -> List[ReleaseDescriptor]:
        return self.feed.list_releases()

    def check_for_update(self) -> Dict[str, Any]:
        """
        Compare the installed version against the latest release.

        Returns:
            dict: success flag, installed info, latest tag and update_available
        """
        info = self.store.read()
        try:
            latest = self.feed.get_latest_release()
        except InstallerError as e:
            log_message(f"Failed to get latest version info: {e}", "ERROR")
            return {"success": False, "error": str(e), "installed": info}
        if latest is None:
            return {"success": False, "error": "Unexpected release feed response", "installed": info}

        installed_version = version_from_info(info)
        if info is None or info.startswith(MANUAL_INSTALL_PREFIX) or installed_version is None:
            update_available = True
        else:
            update_available = is_newer_version(latest.tag_name, installed_version)
        return {
            "success": True,
            "installed": info,
            "latest": latest.tag_name,
            "update_available": update_available,
        }

    # --- Entry points ---
    def install_latest(self, sink: Optional[EventSink] = None, force_redownload: bool = False,
                       token: Optional[CancellationToken] = None) -> Future:
        return run_in_background(self.run_install_latest, sink, force_redownload, token, name="frida-install")

    def install_release(self, release: ReleaseDescriptor, sink: Optional[EventSink] = None,
                        force_redownload: bool = False, token: Optional[CancellationToken] = None) -> Future:
        return run_in_background(self.run_install_release, release, sink, force_redownload, token,
                                 name="frida-install")

    def install_manual_file(self, file_path: str, sink: Optional[EventSink] = None,
                            token: Optional[CancellationToken] = None) -> Future:
        return run_in_background(self.run_install_manual_file, file_path, sink, token, name="frida-install")

    def run_install_latest(self, sink: Optional[EventSink] = None, force_redownload: bool = False,
                           token: Optional[CancellationToken] = None) -> InstallProgressEvent:
        return self._run(self._pipeline_latest, sink, token, force_redownload)

    def run_install_release(self, release: ReleaseDescriptor, sink: Optional[EventSink] = None,
                            force_redownload: bool = False,
                            token: Optional[CancellationToken] = None) -> InstallProgressEvent:
        return self._run(self._pipeline_release, sink, token, release, force_redownload)

    def run_install_manual_file(self, file_path: str, sink: Optional[EventSink] = None,
                                token: Optional[CancellationToken] = None) -> InstallProgressEvent:
        return self._run(self._pipeline_manual, sink, token, file_path)

    def _run(self, pipeline: Callable, sink: Optional[EventSink], token: Optional[CancellationToken],
             *args) -> InstallProgressEvent:
        reporter = ProgressReporter(sink)
        token = token or CancellationToken()
        try:
            pipeline(reporter, token, *args)
        except OperationCancelled:
            reporter.error("Installation cancelled", ErrorKind.CANCELLED)
        except InstallerError as e:
            reporter.error(f"Installation failed: {e}", e.kind)
        except Exception as e:
            log_message(f"Unhandled installation error: {e!r}", "ERROR")
            reporter.error(f"Installation failed: {e}", ErrorKind.INTERNAL)
        if not reporter.finished:
            reporter.error("Installation ended without a result", ErrorKind.INTERNAL)
        return reporter.terminal

    # --- Pipelines ---
    def _pipeline_latest(self, reporter: ProgressReporter, token: CancellationToken,
                         force_redownload: bool) -> None:
        arch = self._prepare(reporter, token)
        if arch is None:
            return

        if not force_redownload and self.is_server_installed():
            info = self.get_installed_server_info()
            reporter.progress(f"Found existing server: {info or UNKNOWN_VERSION}")
            reporter.success(f"✓ Frida server already installed! {info or ''}".rstrip())
            return

        reporter.progress("Fetching latest Frida release from GitHub...")
        try:
            release = self.feed.get_latest_release()
        except InstallerError as e:
            reporter.progress("✗ Failed to fetch release information")
            reporter.error(f"Failed to fetch latest release information: {e}", e.kind)
            return
        if release is None:
            reporter.progress("✗ Failed to fetch release information")
            reporter.error("Failed to fetch latest release information", ErrorKind.RESOLUTION)
            return
        reporter.progress(f"✓ Latest Frida version found: {release.tag_name}")

        self._install_release_asset(reporter, token, release, arch)

    def _pipeline_release(self, reporter: ProgressReporter, token: CancellationToken,
                          release: ReleaseDescriptor, force_redownload: bool) -> None:
        arch = self._prepare(reporter, token)
        if arch is None:
            return

        # An explicit selection always replaces what is installed, forced or not.
        if self.is_server_installed():
            info = self.get_installed_server_info()
            reporter.progress(f"Found existing server: {info or UNKNOWN_VERSION}")
            reporter.progress("Removing existing installation to install selected version...")
            self.remove_existing_installation(stop_server=False)
            reporter.progress("✓ Previous installation removed")
        elif force_redownload:
            log_message("Forced reinstall requested with nothing installed", "DEBUG")

        reporter.progress(f"✓ Selected Frida version: {release.tag_name}")
        self._install_release_asset(reporter, token, release, arch)

    def _pipeline_manual(self, reporter: ProgressReporter, token: CancellationToken, file_path: str) -> None:
        if self._prepare(reporter, token) is None:
            return

        source = Path(file_path)
        if not source.is_file():
            reporter.progress(f"✗ Selected file does not exist: {file_path}")
            reporter.error("Selected file does not exist", ErrorKind.ENVIRONMENT)
            return
        reporter.progress(f"Processing selected file: {source.name} ({format_file_size(source.stat().st_size)})")

        reporter.progress("Validating selected file...")
        verdict = self.validator.validate(source)
        if not verdict.accepted:
            reporter.progress(f"✗ Validation failed: {verdict.reason}")
            reporter.error(f"Invalid Frida server file: {verdict.reason}", ErrorKind.INTEGRITY)
            return
        reporter.progress("✓ File validation passed")
        token.raise_if_cancelled()

        self.store.ensure_dir()
        try:
            if is_compressed(source):
                suffix = source.suffix.lower()
                reporter.progress(f"Processing compressed file ({suffix})...")
                scratch = self.store.internal_dir / f"{SCRATCH_NAME}{suffix}"
                try:
                    copy_file(source, scratch, token)
                    reporter.progress("Extracting server binary...")
                    target = self.decompressor.extract(scratch, token)
                finally:
                    if scratch.exists():
                        scratch.unlink()
            else:
                reporter.progress("Processing raw binary file...")
                target = copy_file(source, self.store.binary_path, token)
        except (ExtractionError, OSError) as e:
            reporter.progress("✗ File processing failed")
            reporter.error(f"Failed to process server file: {e}", ErrorKind.INTEGRITY)
            return
        reporter.progress("✓ File processing completed")

        self._finish(reporter, token, target, f"{MANUAL_INSTALL_PREFIX} ({source.name})", MANUAL_ARCH,
                     "✓ Frida server installed successfully from manual file!")

    # --- Shared steps ---
    def _prepare(self, reporter: ProgressReporter, token: CancellationToken) -> Optional[str]:
        """Stop the server, check root and resolve the architecture; None after an Error."""
        reporter.progress("Stopping any running Frida server...")
        self.supervisor.stop()
        token.raise_if_cancelled()

        reporter.progress("Checking root permissions...")
        if not self.shell.check_root():
            reporter.progress("✗ Root check failed - No root access")
            reporter.error("Root access is required but not available", ErrorKind.ENVIRONMENT)
            return None
        reporter.progress("✓ Root access confirmed - Device is rooted")
        token.raise_if_cancelled()

        reporter.progress("Detecting device architecture...")
        try:
            arch = self.get_device_architecture()
        except Exception as e:
            reporter.error(f"Failed to detect device architecture: {e}", ErrorKind.ENVIRONMENT)
            return None
        reporter.progress(f"✓ Device architecture detected: {arch}")
        return arch

    def _install_release_asset(self, reporter: ProgressReporter, token: CancellationToken,
                               release: ReleaseDescriptor, arch: str) -> None:
        token.raise_if_cancelled()
        reporter.progress(f"Finding matching server binary for {arch}...")
        url = find_asset(release, arch, self.asset_template)
        if url is None:
            expected = expected_asset_name(release.tag_name, arch, self.asset_template)
            reporter.progress(f"✗ No matching binary found for {arch} (expected {expected})")
            reporter.error(f"No matching server binary found for architecture: {arch}", ErrorKind.RESOLUTION)
            return
        reporter.progress("✓ Found matching binary for download")

        reporter.progress(f"Starting download to {self.transfer.download_dir}/...")
        try:
            downloaded = self.transfer.download(url, reporter, token)
        except TransferError as e:
            reporter.progress("✗ Download failed")
            reporter.error(f"Failed to download Frida server: {e}", e.kind)
            return
        except OSError as e:
            reporter.progress("✗ Download failed")
            reporter.error(f"Failed to download Frida server: {e}", ErrorKind.TRANSFER)
            return
        reporter.progress(f"✓ Download completed: {downloaded.name}")
        token.raise_if_cancelled()

        reporter.progress("Extracting server binary...")
        try:
            extracted = self.decompressor.extract(downloaded, token)
        except (ExtractionError, OSError) as e:
            reporter.progress("✗ Extraction failed")
            reporter.error(f"Failed to extract server binary: {e}", ErrorKind.INTEGRITY)
            return
        reporter.progress("✓ Extraction completed")

        self._finish(reporter, token, extracted, release.tag_name, arch,
                     f"Frida server {release.tag_name} installed successfully!")

    def _finish(self, reporter: ProgressReporter, token: CancellationToken, binary: Path,
                version: str, arch: str, message: str) -> None:
        token.raise_if_cancelled()
        reporter.progress("Setting executable permissions with root...")
        if not self._set_executable_permissions(binary):
            reporter.progress("✗ Permission setting failed")
            reporter.error("Failed to set executable permissions", ErrorKind.PERMISSION)
            return
        reporter.progress("✓ Executable permissions set successfully")

        if not self.store.write(version, arch):
            # the binary is usable; only the cached description is missing
            log_message("Installed server but could not record its version", "WARNING")
        reporter.success(message)

    def _set_executable_permissions(self, binary: Path) -> bool:
        """chmod 755 through the root shell, then trust only the executable bit."""
        if not self.shell.chmod(str(binary), 0o755):
            return False
        return os.access(binary, os.X_OK)
