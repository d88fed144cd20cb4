from contextlib import contextmanager

import pytest

from uefi_vmtest import main
from uefi_vmtest import models
from uefi_vmtest.errors import SetupError


@pytest.fixture(autouse=True)
def no_log_handlers(monkeypatch):
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: None)


@pytest.fixture
def fake_vm(monkeypatch, run_cfg):
    state = {"shutdown": 0, "results": {}}

    @contextmanager
    def _run_config():
        yield run_cfg

    @contextmanager
    def _guest_vm(config):
        handle = models.VMHandle(process=None, config=config)
        try:
            yield handle
        finally:
            state["shutdown"] += 1

    def _run_test(handle, source):
        passed = state["results"].get(source, True)
        return models.TestResult(
            source_path=source,
            artifact_name=source + ".test",
            passed=passed,
            log=f"log of {source}",
            stage=models.TestStage.passed if passed else models.TestStage.failed,
            reached=models.TestStage.executed,
            reason="" if passed else "Command failed (1)",
        )

    monkeypatch.setattr(main, "run_config", _run_config)
    monkeypatch.setattr(main, "guest_vm", _guest_vm)
    monkeypatch.setattr(main, "run_test", _run_test)
    return state


def test_run_all_passing(fake_vm, capsys):
    rc = main.main(["run", "a", "b"])

    out = capsys.readouterr().out
    assert rc == main.EXIT_OK
    assert "=== PASS: a" in out and "log of b" in out
    assert "2 passed, 0 failed" in out
    assert fake_vm["shutdown"] == 1


def test_run_with_failure(fake_vm, capsys):
    fake_vm["results"]["b"] = False

    rc = main.main(["run", "a", "b"])

    out = capsys.readouterr().out
    assert rc == main.EXIT_TEST_FAILED
    assert "=== FAIL: b" in out
    assert "Command failed (1)" in out
    assert "1 passed, 1 failed" in out


def test_run_setup_failure(monkeypatch, capsys):
    @contextmanager
    def _broken():
        raise SetupError("Could not copy firmware", output="")
        yield  # pragma: no cover

    monkeypatch.setattr(main, "run_config", _broken)

    assert main.main(["run", "a"]) == main.EXIT_SETUP_FAILED


def test_setup_failure_prints_console_tail(monkeypatch, capsys):
    console = "\n".join(f"boot line {i}" for i in range(500))

    @contextmanager
    def _broken():
        raise SetupError("'login:' did not appear", output=console)
        yield  # pragma: no cover

    monkeypatch.setattr(main, "run_config", _broken)

    assert main.main(["run", "a"]) == main.EXIT_SETUP_FAILED
    err = capsys.readouterr().err
    assert "boot line 499" in err
    assert "boot line 10\n" not in err


def test_firmware_shell_sends_command(monkeypatch, run_cfg, capsys):
    sent = []

    class _Proc:
        def sendline(self, line):
            sent.append(line)

        def expect(self, marker, timeout):
            sent.append(marker)

        def console_text(self):
            return "Shell> map\nFS0: Alias(s):HD0a1:;BLK1:\nShell> "

    @contextmanager
    def _run_config():
        yield run_cfg

    @contextmanager
    def _fw(config):
        yield _Proc()

    monkeypatch.setattr(main, "run_config", _run_config)
    monkeypatch.setattr(main, "firmware_shell", _fw)

    rc = main.main(["firmware-shell", "--command", "map", "--timeout", "5"])

    assert rc == main.EXIT_OK
    assert sent == ["map", "Shell>"]
    assert "FS0: Alias" in capsys.readouterr().out


def test_parser_requires_subcommand():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])
