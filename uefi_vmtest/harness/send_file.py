from __future__ import annotations

import os
import posixpath
import shutil
from typing import TYPE_CHECKING

import paramiko

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.errors import GuestConnectionError, SetupError, TransferError

if TYPE_CHECKING:
    from uefi_vmtest.models import VMHandle

logger = get_logger(__name__)

ARTIFACT_MODE = 0o755


def copy_file(src: str, dst: str) -> int:
    """
    Copy ``src`` byte for byte into ``dst`` (created or truncated) on the host.
    Returns the number of bytes written; any I/O error is a SetupError.
    """
    try:
        with open(src, "rb") as source, open(dst, "wb") as target:
            shutil.copyfileobj(source, target)
            written = target.tell()
    except OSError as e:
        raise SetupError(f"Could not copy {src} to {dst}: {e}") from e
    logger.debug("Copied %s -> %s (%d bytes)", src, dst, written)
    return written


def push_to_guest(
    handle: VMHandle,
    local_path: str,
    remote_dir: str | None = None,
    timeout: float | None = None,
) -> str:
    """
    Upload ``local_path`` into ``remote_dir`` inside the guest over SFTP and
    make it executable. Returns the remote path.
    """
    remote_dir = remote_dir or settings.VM_REMOTE_DIR
    if timeout is None:
        timeout = settings.VM_TIMEOUT_TRANSFER_S
    if handle.session is None or handle.session.closed:
        raise TransferError("VM has no SSH session to transfer over")

    remote_path = posixpath.join(remote_dir, os.path.basename(local_path))
    try:
        sftp = handle.session.open_sftp()
        sftp.get_channel().settimeout(timeout)
        sftp.put(local_path, remote_path)
        sftp.chmod(remote_path, ARTIFACT_MODE)
    except (
        GuestConnectionError,
        paramiko.SSHException,
        paramiko.SFTPError,
        OSError,
    ) as e:
        raise TransferError(
            f"Could not push {local_path} to {remote_path}: {e}"
        ) from e
    logger.info("Pushed %s to guest:%s", local_path, remote_path)
    return remote_path
