import os
from dotenv import load_dotenv

_ = load_dotenv()

VM_QEMU_BIN = os.environ.get("VM_QEMU_BIN", "/usr/bin/qemu-system-x86_64")
# "auto" picks kvm when /dev/kvm exists, tcg otherwise
VM_ACCEL = os.environ.get("VM_ACCEL", "auto")

VM_OVMF_VARS = os.environ.get(
    "VM_OVMF_VARS", "/usr/share/edk2-ovmf/x64/OVMF_VARS.fd"
)
VM_OVMF_CODE = os.environ.get(
    "VM_OVMF_CODE", "/usr/share/edk2-ovmf/x64/OVMF_CODE.secboot.fd"
)

VM_KERNEL = os.environ.get("VM_KERNEL", "kernel/bzImage")
VM_ROOTFS = os.environ.get("VM_ROOTFS", "kernel/rootfs.cow")
VM_ROOTFS_FORMAT = os.environ.get("VM_ROOTFS_FORMAT", "qcow2")
VM_KERNEL_APPEND = os.environ.get("VM_KERNEL_APPEND", "root=/dev/sda quiet rw")
VM_MEMORY = os.environ.get("VM_MEMORY", "8G")
VM_SMP = int(os.environ.get("VM_SMP", "2"))

VM_SSH_USER = os.environ.get("VM_SSH_USER", "root")
VM_SSH_PASSWORD = os.environ.get("VM_SSH_PASSWORD", "")
VM_SSH_PRIVKEY = os.environ.get("VM_SSH_PRIVKEY", "")

VM_REMOTE_DIR = os.environ.get("VM_REMOTE_DIR", "/")
VM_BUILD_CMD = os.environ.get("VM_BUILD_CMD", "go test -c -o {output} {source}")

VM_TIMEOUT_BOOT_S = int(os.environ.get("VM_TIMEOUT_BOOT_S", "50"))
VM_TIMEOUT_DIAL_S = int(os.environ.get("VM_TIMEOUT_DIAL_S", "10"))
VM_TIMEOUT_COMMAND_S = int(os.environ.get("VM_TIMEOUT_COMMAND_S", "300"))
VM_TIMEOUT_TRANSFER_S = int(os.environ.get("VM_TIMEOUT_TRANSFER_S", "60"))
VM_TIMEOUT_BUILD_S = int(os.environ.get("VM_TIMEOUT_BUILD_S", "300"))
VM_TIMEOUT_SHUTDOWN_S = int(os.environ.get("VM_TIMEOUT_SHUTDOWN_S", "10"))

VM_LOG_LEVEL = os.environ.get("VM_LOG_LEVEL", "")
