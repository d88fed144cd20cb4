"""Error taxonomy for the vm test harness.

Hierarchy:
    VMTestError (base)
    ├── SetupError              firmware copy, emulator launch, console wait
    ├── GuestConnectionError    SSH dial, session/channel open
    ├── BuildError              compiling the test artifact
    ├── TransferError           pushing the artifact into the guest
    └── RemoteExecutionError    non-zero exit or channel failure in the guest

Setup and connection errors end the run. The others are scoped to a single
test and are turned into a failed TestResult by the runner.
"""


class VMTestError(Exception):
    """Base class; ``output`` holds console or command text for diagnosis."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class SetupError(VMTestError):
    pass


class GuestConnectionError(VMTestError):
    pass


class BuildError(VMTestError):
    pass


class TransferError(VMTestError):
    pass


class RemoteExecutionError(VMTestError):
    def __init__(
        self, message: str, output: str = "", exit_status: int | None = None
    ) -> None:
        super().__init__(message, output)
        self.exit_status = exit_status
