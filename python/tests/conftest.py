"""
Pytest configuration and fixtures for horizon-run tests.
"""
import json
import sys
import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT / "python"))


FAKE_EMULATOR = """
import json
import sys
import time

args = sys.argv[1:]
config_path = args[args.index("-c") + 1]
with open(args[-1], encoding="utf-8") as fh:
    program = json.load(fh)
if program.get("config_copy"):
    with open(config_path, encoding="utf-8") as src, open(program["config_copy"], "w", encoding="utf-8") as dst:
        dst.write(config_path + "\\n")
        dst.write(src.read())
for line in program.get("stderr", []):
    sys.stderr.buffer.write(line.encode("utf-8"))
    sys.stderr.buffer.flush()
time.sleep(program.get("sleep", 0))
sys.exit(program.get("exit", 0))
"""

FAKE_GDB = """
import json
import os
import sys
import time

record = os.environ.get("FAKE_GDB_RECORD")
if record:
    with open(record, "w", encoding="utf-8") as fh:
        json.dump({"argv": sys.argv[1:], "pythonpath": os.environ.get("PYTHONPATH")}, fh)
time.sleep(float(os.environ.get("FAKE_GDB_SLEEP", "0")))
sys.exit(int(os.environ.get("FAKE_GDB_EXIT", "0")))
"""


@pytest.fixture
def make_executable(tmp_path):
    """Write a Python script into tmp_path/bin and mark it executable."""

    def _make(name: str, body: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def fake_emulator(make_executable):
    return make_executable("yuzu-cmd", FAKE_EMULATOR)


@pytest.fixture
def fake_gdb(make_executable):
    return make_executable("gdb", FAKE_GDB)


@pytest.fixture
def write_program(tmp_path):
    """Program image understood by the fake emulator."""

    def _write(name: str = "app.nro", **behaviour) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(behaviour), encoding="utf-8")
        return path

    return _write
