import os

from uefi_vmtest import settings
from uefi_vmtest._logging import get_logger
from uefi_vmtest.models import BootMode, BootSpec, GuestImage, RunConfig

logger = get_logger(__name__)

SHELL_PROMPT = "Shell>"
LOGIN_PROMPT = "login:"


def _accel() -> str:
    """Accelerator to use: VM_ACCEL when set, else kvm if /dev/kvm exists."""
    accel = (settings.VM_ACCEL or "auto").strip().lower()
    if accel != "auto":
        return accel
    if os.path.exists("/dev/kvm"):
        logger.debug("Using KVM")
        return "kvm"
    logger.debug("Not using KVM")
    return "tcg"


def _secure_boot_args(config: RunConfig, accel: str) -> list[str]:
    """Machine and firmware arguments shared by both boot modes."""
    return [
        "-machine",
        f"type=q35,smm=on,accel={accel}",
        "-global",
        "driver=cfi.pflash01,property=secure,value=on",
        "-global",
        "ICH9-LPC.disable_s3=1",
        "-drive",
        f"if=pflash,format=raw,unit=0,file={config.firmware_code_path},readonly=on",
        "-drive",
        f"if=pflash,format=raw,unit=1,file={config.firmware_vars_path}",
        "-nographic",
    ]


def firmware_shell_boot_spec(config: RunConfig, shared: bool = True) -> BootSpec:
    """
    Boot straight into the UEFI shell: no guest OS, no network. The run
    directory is exposed to the firmware as a FAT drive when ``shared``.
    """
    args = _secure_boot_args(config, _accel())
    args += [
        "-boot",
        "order=c,menu=on,strict=on",
        "-net",
        "none",
    ]
    if shared and config.working_directory:
        args += ["-drive", f"file=fat:rw:{config.working_directory},format=raw"]
    return BootSpec(
        mode=BootMode.firmware_shell, params=tuple(args), marker=SHELL_PROMPT
    )


def guest_os_boot_spec(
    config: RunConfig,
    image: GuestImage,
    port: int,
    memory: str | None = None,
    smp: int | None = None,
) -> BootSpec:
    """
    Boot a kernel and root filesystem with guest port 22 forwarded to
    127.0.0.1:<port> and the run directory shared over virtio-9p.
    """
    accel = _accel()
    args = _secure_boot_args(config, accel)
    if accel == "kvm":
        args += ["-enable-kvm", "-cpu", "host"]
    else:
        args += ["-cpu", "max"]

    append = image.append or ""
    if "console=" not in append:
        append = f"{append} console=ttyS0".strip()

    args += [
        "-m",
        str(memory or settings.VM_MEMORY),
        "-smp",
        str(smp or settings.VM_SMP),
        "-kernel",
        image.kernel,
        "-append",
        append,
        "-drive",
        f"file={image.rootfs},format={image.rootfs_format}",
        "-netdev",
        f"user,id=net0,hostfwd=tcp:127.0.0.1:{port}-:22",
        "-device",
        "virtio-net-pci,netdev=net0",
        "-fsdev",
        f"local,id=shared_dev,path={config.working_directory},security_model=none",
        "-device",
        "virtio-9p-pci,fsdev=shared_dev,mount_tag=shared",
        "-no-reboot",
    ]
    return BootSpec(
        mode=BootMode.guest_os, params=tuple(args), marker=LOGIN_PROMPT, ssh_port=port
    )
