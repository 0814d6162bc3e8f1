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

import gzip
import lzma
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Optional

from frida_installer.utils.events import CancellationToken, ExtractionError
from frida_installer.utils.index import log_message

COMPRESSED_SUFFIXES = (".xz", ".gz", ".zip")

_CORRUPT_STREAM_ERRORS = (lzma.LZMAError, EOFError, zlib.error, gzip.BadGzipFile, zipfile.BadZipFile)


def is_compressed(path) -> bool:
    return str(path).lower().endswith(COMPRESSED_SUFFIXES)


def remove_existing(target: Path) -> None:
    """
    Delete the target before writing it again.

    Some kernels refuse to open an executable for writing while a process
    still maps it (ETXTBSY); unlinking first sidesteps that.
    """
    if target.exists():
        target.unlink()
        log_message(f"Removed existing {target}", "DEBUG")


class Decompressor:
    """Writes the decompressed server binary to a fixed target path."""

    def __init__(self, target_path: str, chunk_size: int = 64 * 1024):
        self.target_path = Path(target_path)
        self.chunk_size = chunk_size

    def extract(self, compressed_file, token: Optional[CancellationToken] = None) -> Path:
        """
        Decompress `compressed_file` into the target path.

        The source file is left in place.

        Raises:
            ExtractionError: Corrupt, truncated or unsupported input
            OSError: The target could not be written
        """
        source = Path(compressed_file)
        suffix = source.suffix.lower()
        if suffix not in COMPRESSED_SUFFIXES:
            raise ExtractionError(f"Unsupported compressed format: {source.name}")

        self.target_path.parent.mkdir(parents=True, exist_ok=True)
        remove_existing(self.target_path)
        log_message(f"Extracting {source} -> {self.target_path}", "DEBUG")

        try:
            if suffix == ".xz":
                with lzma.open(source, 'rb') as stream:
                    self._copy(stream, token)
            elif suffix == ".gz":
                with gzip.open(source, 'rb') as stream:
                    self._copy(stream, token)
            else:
                with zipfile.ZipFile(source) as archive:
                    members = [m for m in archive.infolist() if not m.is_dir()]
                    if len(members) != 1:
                        raise ExtractionError(
                            f"Expected exactly one file in {source.name}, found {len(members)}")
                    with archive.open(members[0]) as stream:
                        self._copy(stream, token)
        except _CORRUPT_STREAM_ERRORS as e:
            self._discard_partial()
            raise ExtractionError(f"Failed to decompress {source.name}: {e}")
        except BaseException:
            self._discard_partial()
            raise

        return self.target_path

    def _copy(self, stream: BinaryIO, token: Optional[CancellationToken]) -> None:
        with open(self.target_path, 'wb') as out:
            while True:
                if token is not None:
                    token.raise_if_cancelled()
                chunk = stream.read(self.chunk_size)
                if not chunk:
                    break
                out.write(chunk)

    def _discard_partial(self) -> None:
        _discard(self.target_path)


def copy_file(source, dest, token: Optional[CancellationToken] = None) -> Path:
    """Copy a file, replacing `dest` by unlink rather than overwrite; a failed copy leaves no `dest`."""
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    remove_existing(dest)
    try:
        with open(source, 'rb') as fin, open(dest, 'wb') as fout:
            if token is None:
                shutil.copyfileobj(fin, fout)
            else:
                while True:
                    token.raise_if_cancelled()
                    chunk = fin.read(64 * 1024)
                    if not chunk:
                        break
                    fout.write(chunk)
    except BaseException:
        _discard(dest)
        raise
    return dest


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
