import io
import signal
from collections import deque

import pexpect
import psutil

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.errors import SetupError

logger = get_logger(__name__)


def tail(text: str, lines: int = 120) -> str:
    """Last ``lines`` lines of a console transcript."""
    return "\n".join(deque(text.splitlines(), maxlen=lines))


def _safe(call, default=None):
    try:
        return call()
    except (psutil.AccessDenied, psutil.ZombieProcess, psutil.NoSuchProcess):
        return default


def _children(pid: int | None) -> list[psutil.Process]:
    if not pid:
        return []
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []
    return _safe(lambda: parent.children(recursive=True), []) or []


def _reap(procs: list[psutil.Process], timeout: float = 3.0) -> None:
    """Kill whatever the emulator left behind once it is gone."""
    alive = [p for p in procs if _safe(p.is_running, False)]
    for p in alive:
        logger.debug("Killing leftover emulator child %s", p.pid)
        _safe(p.kill)
    if alive:
        psutil.wait_procs(alive, timeout=timeout)


class QemuProcess:
    """
    Emulator process with its serial console attached to a pty.

    Everything read from the console is kept in an in-memory transcript so a
    failed boot or test can always be diagnosed from the captured text.
    """

    def __init__(self, child: pexpect.spawn, transcript: io.StringIO) -> None:
        self._child = child
        self._transcript = transcript
        self._closed = False

    @classmethod
    def spawn(cls, argv: list[str], cwd: str | None = None) -> "QemuProcess":
        logger.info("Starting emulator: %s", " ".join(argv))
        transcript = io.StringIO()
        try:
            child = pexpect.spawn(
                argv[0],
                argv[1:],
                cwd=cwd,
                timeout=None,
                encoding="utf-8",
                codec_errors="replace",
                dimensions=(50, 200),
            )
        except (pexpect.ExceptionPexpect, OSError) as e:
            raise SetupError(f"Could not start emulator {argv[0]}: {e}") from e
        child.logfile_read = transcript
        return cls(child, transcript)

    @property
    def pid(self) -> int | None:
        return self._child.pid

    def is_alive(self) -> bool:
        if self._closed:
            return False
        return self._child.isalive()

    def expect(self, marker: str, timeout: float) -> None:
        """
        Block until ``marker`` appears on the console.
        Raises SetupError on timeout or when the emulator exits first.
        """
        logger.debug("Waiting up to %ss for %r", timeout, marker)
        try:
            self._child.expect_exact(marker, timeout=timeout)
        except pexpect.TIMEOUT as e:
            raise SetupError(
                f"{marker!r} did not appear on the console within {timeout}s",
                output=self.console_text(),
            ) from e
        except pexpect.EOF as e:
            raise SetupError(
                f"Emulator exited before {marker!r} appeared",
                output=self.console_text(),
            ) from e
        logger.info("Console marker %r seen", marker)

    def sendline(self, line: str) -> None:
        self._child.sendline(line)

    def console_text(self) -> str:
        return self._transcript.getvalue()

    def shutdown(self, timeout: float | None = None) -> None:
        """
        Ask the emulator to quit (SIGTERM), wait for it, then force it down.
        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        if timeout is None:
            timeout = settings.VM_TIMEOUT_SHUTDOWN_S

        child = self._child
        leftovers = _children(child.pid)
        try:
            if child.isalive():
                child.kill(signal.SIGTERM)
                child.expect(pexpect.EOF, timeout=timeout)
        except pexpect.TIMEOUT:
            logger.warning(
                "Emulator %s ignored SIGTERM for %ss, killing it", child.pid, timeout
            )
        except (pexpect.ExceptionPexpect, OSError) as e:
            logger.debug("Error waiting for emulator exit: %s", e)

        try:
            child.close(force=True)
        except (pexpect.ExceptionPexpect, OSError) as e:
            logger.debug("Error closing emulator pty: %s", e)
        _reap(leftovers)
        logger.info("Emulator %s stopped (status %s)", child.pid, child.exitstatus)
