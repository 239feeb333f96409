import logging
import os
from pathlib import Path

from horizon_run.config import DebuggerSettings
from horizon_run.gdb import build_debugger_invocation


def test_argument_order_with_everything_configured() -> None:
    printers = Path("/opt/rust/etc")
    settings = DebuggerSettings(
        gdbinit_commands=["break main", "continue"],
        rust_pretty_printers_dir=printers,
    )
    symbols = Path("/work/target/app.elf")
    inv = build_debugger_invocation(Path("/usr/bin/gdb"), settings, 6543, symbols, environ={})
    assert inv.argv == [
        str(Path("/usr/bin/gdb")),
        "-d",
        str(printers),
        "-iex",
        f"add-auto-load-safe-path {printers}",
        "-ex",
        f"file {symbols}",
        "-ex",
        "target remote localhost:6543",
        "-ex",
        "break main",
        "-ex",
        "continue",
    ]
    assert inv.env["PYTHONPATH"] == str(printers)


def test_pythonpath_is_extended() -> None:
    printers = Path("/opt/printers")
    settings = DebuggerSettings(rust_pretty_printers_dir=printers)
    inv = build_debugger_invocation(Path("gdb"), settings, 1, environ={"PYTHONPATH": "/existing"})
    assert inv.env["PYTHONPATH"] == f"/existing{os.pathsep}{printers}"


def test_minimal_invocation_logs_notices(caplog) -> None:
    caplog.set_level(logging.INFO, logger="horizon_run.gdb")
    inv = build_debugger_invocation(Path("gdb"), DebuggerSettings(), 7000, environ={"HOME": "/home/me"})
    assert inv.argv == ["gdb", "-ex", "target remote localhost:7000"]
    assert "PYTHONPATH" not in inv.env
    assert inv.env["HOME"] == "/home/me"
    messages = " ".join(record.getMessage() for record in caplog.records)
    assert "pretty printers" in messages
    assert "symbols file" in messages


def test_init_commands_are_passed_verbatim() -> None:
    commands = ["set print pretty on", "b 'core::panicking::panic'", "  spaced  "]
    inv = build_debugger_invocation(Path("gdb"), DebuggerSettings(gdbinit_commands=commands), 1, environ={})
    tail = inv.argv[-6:]
    assert tail == ["-ex", commands[0], "-ex", commands[1], "-ex", commands[2]]
