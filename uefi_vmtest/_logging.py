"""Logging for the vm test harness.

Every module logs under the ``vmtest`` logger. A NullHandler keeps the
library silent unless the application (the CLI, or pytest's log capture)
configures handlers. ``VM_LOG_LEVEL`` sets the initial level.
"""

import logging

from uefi_vmtest import settings

LIBRARY_LOGGER_NAME: str = "vmtest"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())

_env_level = (settings.VM_LOG_LEVEL or "").strip().upper()
_env_level_value = logging.getLevelNamesMapping().get(_env_level)
if _env_level_value:
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level_value)

_FMT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return the harness logger for a module (``vmtest.<name>``).

    ``name`` is usually ``__name__``; the package prefix is dropped so
    ``uefi_vmtest.qemu_manager.vm`` logs as ``vmtest.qemu_manager.vm``.
    """
    name = name.removeprefix(f"{__package__}.")
    return logging.getLogger(f"{LIBRARY_LOGGER_NAME}.{name}")


def configure_logging(*, level: int | str | None = None) -> None:
    """Attach a stderr handler to the harness logger, once.

    Used by the command line entry point; library consumers that set up
    their own handlers never call it.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    if not any(isinstance(h, logging.StreamHandler) for h in lib_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=_FMT, datefmt=_DATEFMT))
        lib_logger.addHandler(handler)
    if level is not None:
        lib_logger.setLevel(level)
    elif lib_logger.level == logging.NOTSET:
        lib_logger.setLevel(logging.INFO)
