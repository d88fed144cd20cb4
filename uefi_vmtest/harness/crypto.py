import paramiko

from uefi_vmtest._logging import get_logger

logger = get_logger(__name__)


def load_pkey(path: str) -> paramiko.PKey:
    """Try common private key formats, raising if none match."""
    for key_cls in (paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey):
        try:
            return key_cls.from_private_key_file(path)
        except (paramiko.SSHException, OSError) as e:
            logger.debug("Not a %s key: %s (%s)", key_cls.__name__, path, e)
            continue
    raise ValueError(f"Could not load the private key: {path}")
