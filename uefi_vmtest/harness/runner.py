from __future__ import annotations

import os
import posixpath
import shlex
import subprocess
from typing import TYPE_CHECKING

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.errors import BuildError, RemoteExecutionError, TransferError
from uefi_vmtest.models import TestInvocation, TestResult, TestStage
from .send_file import push_to_guest

if TYPE_CHECKING:
    from uefi_vmtest.models import VMHandle

logger = get_logger(__name__)

ARTIFACT_SUFFIX = ".test"
VERBOSE_FLAG = "-test.v"


def artifact_name(source_path: str) -> str:
    """
    Name of the compiled artifact: base name of ``source_path`` plus ".test".

    Only the base name counts, so "a/foo" and "b/foo" share an artifact name
    and must not be run against the same VM at the same time.
    """
    return os.path.basename(os.path.normpath(source_path)) + ARTIFACT_SUFFIX


def make_invocation(source_path: str, remote_dir: str | None = None) -> TestInvocation:
    name = artifact_name(source_path)
    remote_path = posixpath.join(remote_dir or settings.VM_REMOTE_DIR, name)
    return TestInvocation(
        source_path=source_path,
        artifact_name=name,
        remote_command=f"{shlex.quote(remote_path)} {VERBOSE_FLAG}",
    )


def build_artifact(
    invocation: TestInvocation,
    output_dir: str,
    build_cmd: str | None = None,
    timeout: float | None = None,
) -> str:
    """
    Compile ``invocation.source_path`` into ``output_dir``.

    ``build_cmd`` is a command template with ``{output}`` and ``{source}``
    placeholders (VM_BUILD_CMD by default). Returns the artifact path.
    """
    build_cmd = build_cmd or settings.VM_BUILD_CMD
    if timeout is None:
        timeout = settings.VM_TIMEOUT_BUILD_S
    output = os.path.join(output_dir, invocation.artifact_name)
    cmd = [
        part.format(output=output, source=invocation.source_path)
        for part in shlex.split(build_cmd)
    ]

    logger.info("Building %s", invocation.source_path)
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        out = e.output or ""
        if isinstance(out, bytes):
            out = out.decode("utf-8", "replace")
        raise BuildError(f"Build timed out after {timeout}s: {cmd}", output=out) from e
    except OSError as e:
        raise BuildError(f"Could not run build command {cmd}: {e}") from e

    if proc.returncode != 0:
        raise BuildError(
            f"Build failed ({proc.returncode}): {shlex.join(cmd)}",
            output=proc.stdout or "",
        )
    if not os.path.exists(output):
        raise BuildError(
            f"Build produced no artifact at {output}", output=proc.stdout or ""
        )
    return output


def _remove_artifact(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("Could not remove %s: %s", path, e)


def _outcome(
    invocation: TestInvocation,
    passed: bool,
    reached: TestStage,
    log: str = "",
    reason: str = "",
) -> TestResult:
    if passed:
        logger.info("PASS %s", invocation.source_path)
    else:
        logger.warning("FAIL %s: %s", invocation.source_path, reason)
    return TestResult(
        source_path=invocation.source_path,
        artifact_name=invocation.artifact_name,
        passed=passed,
        log=log,
        stage=TestStage.passed if passed else TestStage.failed,
        reached=reached,
        reason=reason,
    )


def run_test(
    handle: VMHandle,
    source_path: str,
    build_dir: str | None = None,
    timeout: float | None = None,
) -> TestResult:
    """
    Build ``source_path``, push the artifact into the guest, run it there
    with verbose output and report the outcome.

    Stages run strictly in order (idle, built, pushed, executed). The first
    failing stage ends the test; later stages are never attempted.
    """
    invocation = make_invocation(source_path)
    build_dir = build_dir or handle.config.working_directory

    try:
        local_path = build_artifact(invocation, build_dir)
    except BuildError as e:
        return _outcome(invocation, False, TestStage.idle, e.output, str(e))

    try:
        push_to_guest(handle, local_path)
    except TransferError as e:
        return _outcome(invocation, False, TestStage.built, e.output, str(e))
    finally:
        _remove_artifact(local_path)

    if handle.session is None:
        return _outcome(invocation, False, TestStage.pushed, "", "VM has no session")

    try:
        output = handle.session.run(invocation.remote_command, timeout=timeout)
    except RemoteExecutionError as e:
        reached = TestStage.executed if e.exit_status is not None else TestStage.pushed
        return _outcome(invocation, False, reached, e.output, str(e))

    return _outcome(invocation, True, TestStage.executed, output)
