"""Binary converters turning the target executable into something yuzu loads."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from .errors import ConversionFailure, ExecutableNotFound
from .executables import resolve_executable

LOGGER = logging.getLogger("horizon_run.converter")

CONVERTED_NAME = "converted.nro"


class BinaryConverter:
    """Converts *source* into an emulator-loadable file inside *workdir*."""

    def convert(self, source: Path, workdir: Path) -> Path:
        raise NotImplementedError


class PassthroughConverter(BinaryConverter):
    """For inputs that are already NRO/NSO images."""

    def convert(self, source: Path, workdir: Path) -> Path:
        source = Path(source)
        if not source.is_file():
            raise ConversionFailure(f"program {source} does not exist")
        return source


class Elf2NroConverter(BinaryConverter):
    """Runs the devkitPro ``elf2nro`` tool."""

    def __init__(self, tool: str = "elf2nro", tool_path: Optional[Path] = None) -> None:
        self.tool = tool
        self.tool_path = tool_path

    def convert(self, source: Path, workdir: Path) -> Path:
        source = Path(source)
        if not source.is_file():
            raise ConversionFailure(f"ELF file {source} does not exist")
        try:
            tool = resolve_executable(self.tool_path, (self.tool,), what=self.tool)
        except ExecutableNotFound as exc:
            raise ConversionFailure(f"no {self.tool} available to convert {source}") from exc
        output = Path(workdir) / CONVERTED_NAME
        cmd = [str(tool), str(source), str(output)]
        LOGGER.debug("converting: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as exc:
            raise ConversionFailure(f"running {tool}") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            message = f"{self.tool} exited with status {result.returncode}"
            if detail:
                message += f": {detail}"
            raise ConversionFailure(message)
        if not output.is_file():
            raise ConversionFailure(f"{self.tool} did not produce {output}")
        return output


__all__ = ["BinaryConverter", "PassthroughConverter", "Elf2NroConverter", "CONVERTED_NAME"]
