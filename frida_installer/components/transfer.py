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

import os
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

import requests

from frida_installer.utils.events import (
    CancellationToken,
    ErrorKind,
    ProgressReporter,
    TransferError,
)
from frida_installer.utils.index import log_message


def filename_from_url(url: str) -> str:
    """Last path segment of a URL, used as the download file name."""
    name = os.path.basename(unquote(urlparse(url).path))
    if not name:
        raise TransferError(f"Cannot derive a file name from {url}")
    return name


class TransferEngine:
    """
    Streams release artifacts into the public download directory.

    Downloaded files are kept: the directory doubles as a cache the user can
    browse, and downloading the same artifact again overwrites it.
    """

    def __init__(self, download_dir: str, session: Optional[requests.Session] = None,
                 timeout: Tuple[float, float] = (15, 60), chunk_size: int = 8192):
        self.download_dir = Path(download_dir)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    def download(self, url: str, reporter: ProgressReporter,
                 token: Optional[CancellationToken] = None) -> Path:
        """
        Download `url` to <download_dir>/<last path segment>.

        Raises:
            TransferError: Non-success status or stream failure
            OperationCancelled: The token was cancelled between chunks
        """
        output_file = self.download_dir / filename_from_url(url)
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransferError(f"Download timed out: {e}", ErrorKind.TIMEOUT)
        except requests.RequestException as e:
            raise TransferError(f"Failed to download asset: {e}")

        with response:
            if not 200 <= response.status_code < 300:
                raise TransferError(f"Failed to download asset: {response.status_code}")

            total = _content_length(response)
            downloaded = 0
            self.download_dir.mkdir(parents=True, exist_ok=True)
            log_message(f"Downloading {url} -> {output_file} ({total if total else 'unknown'} bytes)", "DEBUG")

            try:
                with open(output_file, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if token is not None:
                            token.raise_if_cancelled()
                        if not chunk:
                            continue
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total:
                            reporter.download(downloaded * 100 // total, downloaded, total)
                        else:
                            reporter.download(None, downloaded, None)
            except requests.Timeout as e:
                raise TransferError(f"Download stalled: {e}", ErrorKind.TIMEOUT)
            except requests.RequestException as e:
                raise TransferError(f"Download interrupted after {downloaded} bytes: {e}")

        return output_file


def _content_length(response: requests.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    try:
        length = int(value) if value is not None else None
    except ValueError:
        return None
    return length if length and length > 0 else None
