from __future__ import annotations

import socket

import paramiko

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.errors import GuestConnectionError, RemoteExecutionError
from .crypto import load_pkey

logger = get_logger(__name__)

_RECV_CHUNK = 32768


class GuestSession:
    """
    SSH connection into a guest plus the command channel opened for it.

    A channel carries a single command. ``run`` uses the channel opened at
    connect time for the first command and a fresh one for every later
    command, so callers never see the one-shot restriction.
    """

    def __init__(self, client: paramiko.SSHClient) -> None:
        self._client: paramiko.SSHClient | None = client
        self._channel: paramiko.Channel | None = None
        self._sftp: paramiko.SFTPClient | None = None

    @classmethod
    def dial(
        cls,
        port: int,
        host: str = "127.0.0.1",
        user: str | None = None,
        password: str | None = None,
        key_path: str | None = None,
        timeout: float | None = None,
    ) -> GuestSession:
        """
        Connect to the guest's forwarded SSH port. Host keys are accepted
        blindly: the guest is ephemeral and only reachable on localhost.
        """
        user = user or settings.VM_SSH_USER
        key_path = settings.VM_SSH_PRIVKEY if key_path is None else key_path
        if password is None:
            password = settings.VM_SSH_PASSWORD
        if timeout is None:
            timeout = settings.VM_TIMEOUT_DIAL_S

        cli = paramiko.SSHClient()
        cli.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            pkey = load_pkey(key_path) if key_path else None
            cli.connect(
                host,
                port=port,
                username=user,
                pkey=pkey,
                password=None if pkey else password,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                look_for_keys=False,
                allow_agent=False,
            )
        except (paramiko.SSHException, OSError, ValueError) as e:
            cli.close()
            raise GuestConnectionError(
                f"SSH connection to {user}@{host}:{port} failed: {e}"
            ) from e
        logger.info("SSH connected to %s@%s:%s", user, host, port)
        return cls(cli)

    def _new_channel(self) -> paramiko.Channel:
        if self._client is None:
            raise GuestConnectionError("Session is closed")
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise GuestConnectionError("SSH transport is not active")
        try:
            chan = transport.open_session()
        except (paramiko.SSHException, OSError) as e:
            raise GuestConnectionError(f"Could not open a command channel: {e}") from e
        return chan

    def open_channel(self) -> paramiko.Channel:
        """Open the command channel the next ``run`` will use."""
        self.close_channel()
        self._channel = self._new_channel()
        return self._channel

    def _take_channel(self) -> paramiko.Channel:
        chan, self._channel = self._channel, None
        if chan is None or chan.closed:
            chan = self._new_channel()
        return chan

    def run(self, command: str, timeout: float | None = None) -> str:
        """
        Run ``command`` in the guest and return stdout and stderr combined.

        Raises RemoteExecutionError if the command exits non-zero, times out
        or the channel breaks. The captured output travels with the error.
        """
        if timeout is None:
            timeout = settings.VM_TIMEOUT_COMMAND_S
        try:
            chan = self._take_channel()
        except GuestConnectionError as e:
            raise RemoteExecutionError(str(e)) from e

        chunks: list[bytes] = []
        try:
            chan.settimeout(timeout)
            chan.set_combine_stderr(True)
            logger.debug("Running in guest: %s", command)
            chan.exec_command(command)
            while True:
                data = chan.recv(_RECV_CHUNK)
                if not data:
                    break
                chunks.append(data)
            exit_status = chan.recv_exit_status()
        except socket.timeout as e:
            raise RemoteExecutionError(
                f"Command timed out after {timeout}s: {command}",
                output=_decode(chunks),
            ) from e
        except (paramiko.SSHException, OSError) as e:
            raise RemoteExecutionError(
                f"Channel failed running {command}: {e}", output=_decode(chunks)
            ) from e
        finally:
            chan.close()

        output = _decode(chunks)
        if exit_status != 0:
            raise RemoteExecutionError(
                f"Command failed ({exit_status}): {command}",
                output=output,
                exit_status=exit_status,
            )
        return output

    def open_sftp(self) -> paramiko.SFTPClient:
        if self._client is None:
            raise GuestConnectionError("Session is closed")
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp

    def close_channel(self) -> None:
        chan, self._channel = self._channel, None
        if chan is None:
            return
        try:
            chan.close()
        except Exception as e:
            logger.debug("Error closing channel: %s", e)

    def close(self) -> None:
        """Release channel, SFTP client and connection. Idempotent."""
        self.close_channel()
        sftp, self._sftp = self._sftp, None
        if sftp is not None:
            try:
                sftp.close()
            except Exception as e:
                logger.debug("Error closing sftp: %s", e)
        cli, self._client = self._client, None
        if cli is not None:
            try:
                cli.close()
            except Exception as e:
                logger.debug("Error closing ssh client: %s", e)

    @property
    def closed(self) -> bool:
        return self._client is None


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", "replace")
