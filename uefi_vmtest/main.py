"""Command line entry point: ``vmtest run`` and ``vmtest firmware-shell``."""

import argparse
import logging
import sys

from uefi_vmtest import settings
from uefi_vmtest._logging import configure_logging, get_logger
from uefi_vmtest.errors import GuestConnectionError, SetupError, VMTestError
from uefi_vmtest.harness.runner import run_test
from uefi_vmtest.qemu_manager import SHELL_PROMPT, firmware_shell, guest_vm, run_config
from uefi_vmtest.qemu_manager.console import tail

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_TEST_FAILED = 1
EXIT_SETUP_FAILED = 2


def _report_setup_failure(error: VMTestError) -> None:
    logger.error("%s", error)
    if error.output:
        print("=== console (tail) ===", file=sys.stderr)
        print(tail(error.output), file=sys.stderr)


def cmd_run(args: argparse.Namespace) -> int:
    failed = 0
    try:
        with run_config() as config, guest_vm(config) as vm:
            for source in args.sources:
                result = run_test(vm, source)
                print(f"=== {'PASS' if result.passed else 'FAIL'}: {source}")
                if result.log:
                    print(result.log)
                if not result.passed:
                    if result.reason:
                        print(f"--- {result.reason}")
                    failed += 1
    except (SetupError, GuestConnectionError) as e:
        _report_setup_failure(e)
        return EXIT_SETUP_FAILED

    print(f"{len(args.sources) - failed} passed, {failed} failed")
    return EXIT_TEST_FAILED if failed else EXIT_OK


def cmd_firmware_shell(args: argparse.Namespace) -> int:
    try:
        with run_config() as config, firmware_shell(config) as proc:
            print("Firmware shell ready")
            if args.command:
                proc.sendline(args.command)
                proc.expect(SHELL_PROMPT, timeout=args.timeout)
            print(proc.console_text())
    except SetupError as e:
        _report_setup_failure(e)
        return EXIT_SETUP_FAILED
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmtest",
        description="Run compiled tests inside a QEMU virtual machine.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at DEBUG level"
    )
    sub = parser.add_subparsers(dest="command_name", required=True)

    run = sub.add_parser("run", help="Boot the guest OS and run each test in it")
    run.add_argument("sources", nargs="+", help="Test sources to build and run")
    run.set_defaults(func=cmd_run)

    fw = sub.add_parser("firmware-shell", help="Boot into the UEFI shell")
    fw.add_argument("--command", help="Shell command to send once the prompt shows")
    fw.add_argument(
        "--timeout",
        type=float,
        default=settings.VM_TIMEOUT_COMMAND_S,
        help="Seconds to wait for the prompt after --command",
    )
    fw.set_defaults(func=cmd_firmware_shell)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else None)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
