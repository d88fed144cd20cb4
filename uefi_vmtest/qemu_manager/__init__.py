from .ports import pick_free_port
from .workdir import new_run_config, remove_run_config, run_config
from .qemu_args import (
    firmware_shell_boot_spec,
    guest_os_boot_spec,
    LOGIN_PROMPT,
    SHELL_PROMPT,
)
from .console import QemuProcess
from .vm import start_firmware_shell, start_guest_os, shutdown, guest_vm, firmware_shell

__all__ = [
    "pick_free_port",
    "new_run_config",
    "remove_run_config",
    "run_config",
    "firmware_shell_boot_spec",
    "guest_os_boot_spec",
    "LOGIN_PROMPT",
    "SHELL_PROMPT",
    "QemuProcess",
    "start_firmware_shell",
    "start_guest_os",
    "shutdown",
    "guest_vm",
    "firmware_shell",
]
