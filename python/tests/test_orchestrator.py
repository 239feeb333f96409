import json
import sys

import pytest

from horizon_run.config import Config, EmulatorSettings
from horizon_run.converter import PassthroughConverter
from horizon_run.errors import ExecutableNotFound, HorizonRunError, SpawnFailure
from horizon_run.orchestrator import ProcessOrchestrator

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="fake executables need a shebang")


def _config(emulator_path=None) -> Config:
    return Config(emulator=EmulatorSettings(yuzu_cmd_path=emulator_path))


def test_scope_is_removed_on_close() -> None:
    orchestrator = ProcessOrchestrator(_config(), converter=PassthroughConverter())
    with orchestrator:
        workdir = orchestrator.workdir
        config_path = orchestrator.write_config(6543)
        assert config_path.parent == workdir
        assert "use_gdbstub=true" in config_path.read_text(encoding="utf-8")
    assert not workdir.exists()
    with pytest.raises(HorizonRunError):
        orchestrator.workdir


def test_scope_is_removed_when_emulator_is_missing(tmp_path, monkeypatch, write_program) -> None:
    monkeypatch.setenv("PATH", str(tmp_path))
    program = write_program()
    with pytest.raises(ExecutableNotFound):
        with ProcessOrchestrator(_config(), converter=PassthroughConverter()) as orchestrator:
            workdir = orchestrator.workdir
            orchestrator.spawn_emulator(program)
    assert not workdir.exists()


def test_spawn_failure_is_wrapped(tmp_path, write_program) -> None:
    not_executable = tmp_path / "yuzu-cmd"
    not_executable.write_text("not a program", encoding="utf-8")
    not_executable.chmod(0o644)
    with ProcessOrchestrator(_config(not_executable), converter=PassthroughConverter()) as orchestrator:
        with pytest.raises(SpawnFailure) as excinfo:
            orchestrator.spawn_emulator(write_program())
    assert isinstance(excinfo.value.__cause__, OSError)


def test_emulator_command_layout(fake_emulator, write_program) -> None:
    program = write_program()
    with ProcessOrchestrator(_config(fake_emulator), converter=PassthroughConverter()) as orchestrator:
        cmd = orchestrator.emulator_command(program)
        assert cmd == [str(fake_emulator), "-c", str(orchestrator.workdir / "yuzu.ini"), str(program)]


def test_spawn_emulator_pipes_stderr(fake_emulator, write_program) -> None:
    program = write_program(stderr=["[0.1] A.B <Debug> f:OutputDebugString:1: hi\n"], exit=0)
    with ProcessOrchestrator(_config(fake_emulator), converter=PassthroughConverter()) as orchestrator:
        orchestrator.write_config()
        proc = orchestrator.spawn_emulator(program)
        data = proc.stderr.read()
        proc.stderr.close()
        assert proc.wait() == 0
    assert data == b"[0.1] A.B <Debug> f:OutputDebugString:1: hi\n"


def test_spawn_debugger_uses_invocation(tmp_path, monkeypatch, fake_gdb) -> None:
    record = tmp_path / "gdb.json"
    monkeypatch.setenv("FAKE_GDB_RECORD", str(record))
    config = _config()
    config.debugger.gdb_location = fake_gdb
    config.debugger.gdbinit_commands = ["continue"]
    with ProcessOrchestrator(config, converter=PassthroughConverter()) as orchestrator:
        proc = orchestrator.spawn_debugger(7000, tmp_path / "app.elf")
        assert proc.wait() == 0
    seen = json.loads(record.read_text(encoding="utf-8"))
    assert seen["argv"] == [
        "-ex",
        f"file {tmp_path / 'app.elf'}",
        "-ex",
        "target remote localhost:7000",
        "-ex",
        "continue",
    ]
