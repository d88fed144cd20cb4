from contextlib import contextmanager
from typing import Iterator

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.harness.session import GuestSession
from uefi_vmtest.models import GuestImage, RunConfig, VMHandle

from .console import QemuProcess
from .ports import pick_free_port
from .qemu_args import firmware_shell_boot_spec, guest_os_boot_spec

logger = get_logger(__name__)


def start_firmware_shell(
    config: RunConfig,
    timeout: float | None = None,
    shared: bool = True,
) -> QemuProcess:
    """
    Boot the firmware alone and wait for the UEFI shell prompt.
    The emulator is stopped before any SetupError propagates.
    """
    if timeout is None:
        timeout = settings.VM_TIMEOUT_BOOT_S
    spec = firmware_shell_boot_spec(config, shared=shared)
    proc = QemuProcess.spawn(spec.argv(settings.VM_QEMU_BIN))
    try:
        proc.expect(spec.marker, timeout=timeout)
    except Exception:
        proc.shutdown()
        raise
    return proc


def start_guest_os(
    config: RunConfig,
    image: GuestImage | None = None,
    timeout: float | None = None,
    dial_timeout: float | None = None,
    port: int | None = None,
) -> VMHandle:
    """
    Boot kernel + rootfs, wait for the login prompt, then connect over SSH
    and open the command channel.

    Raises SetupError if the emulator does not come up and
    GuestConnectionError if SSH cannot be established. Whatever was already
    started is torn down first.
    """
    if timeout is None:
        timeout = settings.VM_TIMEOUT_BOOT_S
    image = image or GuestImage()
    port = port or pick_free_port()

    spec = guest_os_boot_spec(config, image, port)
    proc = QemuProcess.spawn(spec.argv(settings.VM_QEMU_BIN))
    handle = VMHandle(process=proc, config=config, ssh_port=port)
    try:
        proc.expect(spec.marker, timeout=timeout)
        handle.session = GuestSession.dial(port=port, timeout=dial_timeout)
        handle.session.open_channel()
    except Exception:
        shutdown(handle)
        raise
    logger.info("Guest ready on 127.0.0.1:%s", port)
    return handle


def shutdown(handle: VMHandle, timeout: float | None = None) -> None:
    """
    Close the command channel, then the SSH connection, then stop the
    emulator. Each step tolerates its resource being gone already, so this
    may be called any number of times.
    """
    session = handle.session
    if session is not None:
        try:
            session.close_channel()
        except Exception as e:
            logger.debug("Error closing channel: %s", e)
        try:
            session.close()
        except Exception as e:
            logger.debug("Error closing session: %s", e)
    try:
        handle.process.shutdown(timeout=timeout)
    except Exception as e:
        logger.debug("Error stopping emulator: %s", e)


@contextmanager
def guest_vm(config: RunConfig, image: GuestImage | None = None) -> Iterator[VMHandle]:
    handle = start_guest_os(config, image=image)
    try:
        yield handle
    finally:
        shutdown(handle)


@contextmanager
def firmware_shell(config: RunConfig) -> Iterator[QemuProcess]:
    proc = start_firmware_shell(config)
    try:
        yield proc
    finally:
        proc.shutdown()

