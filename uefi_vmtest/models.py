from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from uefi_vmtest import settings

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uefi_vmtest.qemu_manager.console import QemuProcess
    from uefi_vmtest.harness.session import GuestSession


@dataclass(frozen=True)
class FirmwareSources:
    """Host paths the per-run firmware images are seeded from."""

    vars_source: str = field(default_factory=lambda: settings.VM_OVMF_VARS)
    code_source: str = field(default_factory=lambda: settings.VM_OVMF_CODE)


@dataclass
class RunConfig:
    """
    Per-run working directory holding private copies of the firmware images.
    The directory is also exported to the guest as its shared folder.
    """

    working_directory: str
    firmware_vars_path: str
    firmware_code_path: str


@dataclass(frozen=True)
class GuestImage:
    kernel: str = field(default_factory=lambda: settings.VM_KERNEL)
    rootfs: str = field(default_factory=lambda: settings.VM_ROOTFS)
    rootfs_format: str = field(default_factory=lambda: settings.VM_ROOTFS_FORMAT)
    append: str = field(default_factory=lambda: settings.VM_KERNEL_APPEND)


class BootMode(str, Enum):
    firmware_shell = "firmware_shell"
    guest_os = "guest_os"


@dataclass(frozen=True)
class BootSpec:
    mode: BootMode
    params: tuple[str, ...]
    marker: str
    ssh_port: int | None = None

    def argv(self, qemu_bin: str) -> list[str]:
        return [qemu_bin, *self.params]


@dataclass
class VMHandle:
    """
    A booted machine: the emulator process and, for guest-OS boots, the SSH
    session opened once the login prompt appeared.
    """

    process: QemuProcess
    config: RunConfig
    session: GuestSession | None = None
    ssh_port: int | None = None


@dataclass(frozen=True)
class TestInvocation:
    source_path: str
    artifact_name: str
    remote_command: str


class TestStage(str, Enum):
    idle = "idle"
    built = "built"
    pushed = "pushed"
    executed = "executed"
    passed = "passed"
    failed = "failed"


class TestResult(BaseModel):
    source_path: str
    artifact_name: str
    passed: bool
    log: str = Field("", description="Build or guest output, verbatim")
    stage: TestStage = Field(TestStage.idle, description="Final state")
    reached: TestStage = Field(
        TestStage.idle, description="Last stage completed before the outcome"
    )
    reason: str = ""
