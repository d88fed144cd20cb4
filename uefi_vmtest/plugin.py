"""pytest fixtures for running tests inside a QEMU guest.

Registered through the ``pytest11`` entry point, so a suite only has to
request the fixtures::

    def test_efivars(run_in_vm):
        run_in_vm("./efi/efivars")
"""

import functools
from typing import Callable, Iterator

import pytest

from uefi_vmtest.harness.runner import run_test
from uefi_vmtest.models import RunConfig, TestResult, VMHandle
from uefi_vmtest.qemu_manager import QemuProcess, firmware_shell as _firmware_shell
from uefi_vmtest.qemu_manager import guest_vm as _guest_vm
from uefi_vmtest.qemu_manager import run_config as _run_config


@pytest.fixture
def vm_run_config() -> Iterator[RunConfig]:
    """Fresh working directory with private firmware copies, removed afterwards."""
    with _run_config() as config:
        yield config


@pytest.fixture
def guest_vm(vm_run_config: RunConfig) -> Iterator[VMHandle]:
    with _guest_vm(vm_run_config) as handle:
        yield handle


@pytest.fixture
def firmware_shell(vm_run_config: RunConfig) -> Iterator[QemuProcess]:
    with _firmware_shell(vm_run_config) as proc:
        yield proc


def run_and_check(handle: VMHandle, source_path: str) -> TestResult:
    """
    Build, push and run a test source in the guest. The guest output is
    printed (pytest shows it for failing tests) and a failed guest test
    fails the calling pytest test.
    """
    result = run_test(handle, source_path)
    print(f"\n{result.log}")
    if not result.passed:
        pytest.fail(f"{source_path}: {result.reason}", pytrace=False)
    return result


@pytest.fixture
def run_in_vm(guest_vm: VMHandle) -> Callable[[str], TestResult]:
    return functools.partial(run_and_check, guest_vm)
