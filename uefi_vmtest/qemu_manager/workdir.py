import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator

from uefi_vmtest._logging import get_logger
from uefi_vmtest.harness.send_file import copy_file
from uefi_vmtest.models import FirmwareSources, RunConfig

logger = get_logger(__name__)

WORKDIR_PREFIX = "uefi-vmtest-"
VARS_IMAGE = "OVMF_VARS.fd"
CODE_IMAGE = "OVMF_CODE.fd"


def new_run_config(sources: FirmwareSources | None = None) -> RunConfig:
    """
    Allocate a fresh working directory and seed it with private copies of the
    firmware variable store and code volume. The copies get fixed names per
    role, whatever the sources are called.

    The directory is removed again if seeding fails.
    """
    sources = sources or FirmwareSources()
    workdir = tempfile.mkdtemp(prefix=WORKDIR_PREFIX)
    config = RunConfig(
        working_directory=workdir,
        firmware_vars_path=os.path.join(workdir, VARS_IMAGE),
        firmware_code_path=os.path.join(workdir, CODE_IMAGE),
    )
    try:
        copy_file(sources.vars_source, config.firmware_vars_path)
        copy_file(sources.code_source, config.firmware_code_path)
    except Exception:
        remove_run_config(config)
        raise
    logger.info("Run directory ready: %s", workdir)
    return config


def remove_run_config(config: RunConfig) -> None:
    if not os.path.isdir(config.working_directory):
        return
    shutil.rmtree(config.working_directory, ignore_errors=True)
    logger.debug("Removed run directory %s", config.working_directory)


@contextmanager
def run_config(sources: FirmwareSources | None = None) -> Iterator[RunConfig]:
    config = new_run_config(sources)
    try:
        yield config
    finally:
        remove_run_config(config)
