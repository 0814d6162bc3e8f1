import lzma
import os
import subprocess
import sys
from unittest.mock import MagicMock

import pytest
import requests

from frida_installer.utils.config import load_config
from frida_installer.utils.events import EventCollector
from frida_installer.utils.index import setup_logging
from frida_installer.utils.shell import RootShell, ShellResult

ELF_HEADER = b"\x7fELF\x02\x01\x01\x00"
XZ_HEADER = b"\xfd7zXZ\x00"
MIB = 1024 * 1024

FAKE_SU = """#!/bin/sh
id() { echo "uid=0(root) gid=0(root) groups=0(root)"; }
while IFS= read -r line; do
    eval "$line"
done
"""


class FakeResponse:
    """Minimal stand-in for requests.Response used by the feed and transfer tests."""

    def __init__(self, status_code=200, body=b"", json_data=None, headers=None, chunk_size=None):
        self.status_code = status_code
        self.body = body
        self._json = json_data
        self.headers = headers if headers is not None else {"Content-Length": str(len(body))}
        self.fixed_chunk = chunk_size
        self.closed = False

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def iter_content(self, chunk_size=1):
        size = self.fixed_chunk or chunk_size
        for i in range(0, len(self.body), size):
            yield self.body[i:i + size]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def elf_bytes(size: int) -> bytes:
    return ELF_HEADER + b"\x00" * (size - len(ELF_HEADER))


def xz_bytes(payload: bytes) -> bytes:
    return lzma.compress(payload, format=lzma.FORMAT_XZ)


@pytest.fixture(autouse=True, scope="session")
def _logging():
    setup_logging(debug=True)


@pytest.fixture
def config(tmp_path):
    """Default configuration pointed at temporary directories with no delays."""
    cfg = load_config(str(tmp_path / "absent-index.json"))
    c = cfg["config"]
    c["directories"]["internal_dir"] = str(tmp_path / "internal")
    c["directories"]["download_dir"] = str(tmp_path / "downloads")
    c["directories"]["working_dir"] = str(tmp_path)
    c["timeouts"].update({"settle_delay": 0, "stop_grace": 1, "sweep_delay": 0, "reader_join": 2})
    c["transfer"]["chunk_size"] = 64 * 1024
    return cfg


@pytest.fixture
def collector():
    return EventCollector()


@pytest.fixture
def root_shell():
    """RootShell double: root available, chmod applied locally, no process found."""
    shell = MagicMock(spec=RootShell)
    shell.check_root.return_value = True

    def chmod(path, mode=0o755):
        os.chmod(path, mode)
        return True

    shell.chmod.side_effect = chmod
    shell.run.return_value = ShellResult(1, None, [])
    return shell


@pytest.fixture
def session():
    http = requests.Session()
    http.get = MagicMock(name="get")
    return http


@pytest.fixture
def fake_su(tmp_path):
    """A `su` replacement that evaluates commands and claims uid 0."""
    path = tmp_path / "fake-su"
    path.write_text(FAKE_SU)
    path.chmod(0o755)
    return str(path)


def spawn_python(code: str) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-c", code],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        bufsize=1,
    )
