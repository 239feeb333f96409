import pytest

from horizon_run.errors import (
    ConfigWriteFailure,
    OperationError,
    SubprocessFailure,
    during,
    error_chain,
    exit_code_for,
    format_error_chain,
)


def test_during_wraps_and_keeps_cause() -> None:
    with pytest.raises(OperationError) as excinfo:
        with during("writing the emulator config"):
            raise ConfigWriteFailure("disk full")
    assert excinfo.value.operation == "writing the emulator config"
    assert isinstance(excinfo.value.__cause__, ConfigWriteFailure)


def test_during_wraps_os_errors() -> None:
    with pytest.raises(OperationError):
        with during("reading"):
            raise FileNotFoundError("gone")


def test_during_leaves_other_errors_alone() -> None:
    with pytest.raises(KeyError):
        with during("lookup"):
            raise KeyError("x")


def test_format_error_chain() -> None:
    try:
        with during("executing run subcommand"):
            raise SubprocessFailure(3, "emulator")
    except OperationError as exc:
        text = format_error_chain(exc)
        assert len(error_chain(exc)) == 2
    assert text.splitlines() == [
        "error: executing run subcommand",
        "  caused by: emulator exited with status 3",
    ]


def test_exit_code_mirrors_subprocess() -> None:
    outer = OperationError("executing debug subcommand")
    outer.__cause__ = SubprocessFailure(2, "debugger")
    assert exit_code_for(outer) == 2
    assert exit_code_for(OperationError("loading config")) == 1
    assert exit_code_for(SubprocessFailure(-15, "emulator")) == 143
