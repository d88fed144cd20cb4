import socket

from uefi_vmtest._logging import get_logger

logger = get_logger(__name__)


def pick_free_port() -> int:
    """
    Pick an ephemeral localhost TCP port (bound then released).
    The port is free only until someone else binds it; QEMU binds it later.
    """
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    logger.debug("Port selected %s", port)
    return port
