# conftest.py
import os
import sys
import pathlib

import pytest

# ----------------------
# Path setup: make the repository root importable so `uefi_vmtest`
# resolves to the working tree without an install.
# ----------------------
_THIS_DIR = pathlib.Path(__file__).resolve().parent
_PKG_ROOT = _THIS_DIR.parent
if str(_PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(_PKG_ROOT))

from uefi_vmtest import settings  # noqa: E402
from uefi_vmtest import models  # noqa: E402


# ----------------------
# Fakes for paramiko
# ----------------------
class FakeChannel:
    def __init__(
        self,
        chunks: list[bytes] | None = None,
        status: int = 0,
        recv_error: Exception | None = None,
    ):
        self._chunks = list(chunks or [])
        self._status = status
        self._recv_error = recv_error
        self.closed = False
        self.timeout = None
        self.combine_stderr = False
        self.commands: list[str] = []

    def settimeout(self, t):
        self.timeout = t

    def set_combine_stderr(self, combine):
        self.combine_stderr = combine

    def exec_command(self, command: str):
        self.commands.append(command)

    def recv(self, n: int) -> bytes:
        if self._recv_error is not None:
            raise self._recv_error
        if self._chunks:
            return self._chunks.pop(0)
        return b""

    def recv_exit_status(self) -> int:
        return self._status

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, channels: list[FakeChannel] | None = None):
        self.channels = list(channels or [])
        self.opened: list[FakeChannel] = []
        self.active = True

    def is_active(self):
        return self.active

    def open_session(self):
        chan = self.channels.pop(0) if self.channels else FakeChannel()
        self.opened.append(chan)
        return chan


class FakeSFTP:
    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.modes: dict[str, int] = {}
        self.put_error: Exception | None = None
        self.channel = FakeChannel()
        self.closed = False

    def get_channel(self):
        return self.channel

    def put(self, localpath: str, remotepath: str):
        if self.put_error is not None:
            raise self.put_error
        with open(localpath, "rb") as fh:
            self.files[remotepath] = fh.read()

    def chmod(self, path: str, mode: int):
        self.modes[path] = mode

    def close(self):
        self.closed = True


class FakeSSHClient:
    def __init__(self, transport: FakeTransport | None = None):
        self.policy = None
        self.connect_kwargs: dict = {}
        self.connect_error: Exception | None = None
        self.transport = transport or FakeTransport()
        self.sftp = FakeSFTP()
        self.closed = False
        self.close_calls = 0

    def set_missing_host_key_policy(self, policy):
        self.policy = policy

    def connect(self, hostname, **kwargs):
        if self.connect_error is not None:
            raise self.connect_error
        self.connect_kwargs = {"hostname": hostname, **kwargs}

    def get_transport(self):
        return self.transport

    def open_sftp(self):
        return self.sftp

    def close(self):
        self.closed = True
        self.close_calls += 1


# ----------------------
# Fake emulator process
# ----------------------
class FakeProcess:
    """Stands in for QemuProcess; records argv and lifecycle events."""

    def __init__(self, argv, events=None, expect_error=None):
        self.argv = argv
        self.events = events if events is not None else []
        self.expect_error = expect_error
        self.expected: list[tuple[str, float]] = []
        self.shutdown_calls = 0
        self.alive = True

    def expect(self, marker, timeout):
        self.expected.append((marker, timeout))
        if self.expect_error is not None:
            raise self.expect_error

    def is_alive(self):
        return self.alive

    def console_text(self):
        return ""

    def shutdown(self, timeout=None):
        self.shutdown_calls += 1
        self.events.append("process")
        self.alive = False


# ----------------------
# Shared Fixtures
# ----------------------
@pytest.fixture
def firmware_sources(tmp_path) -> models.FirmwareSources:
    """Two fake firmware images filled with arbitrary bytes."""
    src = tmp_path / "firmware"
    src.mkdir()
    vars_fd = src / "OVMF_VARS.fd"
    code_fd = src / "OVMF_CODE.secboot.fd"
    vars_fd.write_bytes(os.urandom(4096))
    code_fd.write_bytes(os.urandom(8192) + b"\x00\xff" * 17)
    return models.FirmwareSources(vars_source=str(vars_fd), code_source=str(code_fd))


@pytest.fixture
def run_cfg(tmp_path) -> models.RunConfig:
    """A RunConfig pointing at a plain directory, no copying involved."""
    wd = tmp_path / "run"
    wd.mkdir()
    return models.RunConfig(
        working_directory=str(wd),
        firmware_vars_path=str(wd / "OVMF_VARS.fd"),
        firmware_code_path=str(wd / "OVMF_CODE.secboot.fd"),
    )


@pytest.fixture
def fake_ssh_factory():
    """
    Helper factory to create FakeSSHClient instances with preset channels.
    """

    def _make(channels: list[FakeChannel] | None = None) -> FakeSSHClient:
        return FakeSSHClient(FakeTransport(channels))

    return _make


@pytest.fixture
def fast_timeouts(monkeypatch):
    monkeypatch.setattr(settings, "VM_TIMEOUT_BOOT_S", 2, raising=False)
    monkeypatch.setattr(settings, "VM_TIMEOUT_DIAL_S", 1, raising=False)
    monkeypatch.setattr(settings, "VM_TIMEOUT_SHUTDOWN_S", 2, raising=False)
