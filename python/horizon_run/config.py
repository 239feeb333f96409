"""Configuration defaults and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union, get_args, get_origin, get_type_hints

import yaml
from tabulate import tabulate

from .errors import ConfigError

LOGGER = logging.getLogger("horizon_run.config")

ENV_PREFIX = "HORIZON_RUN_"
LIST_SEPARATOR = ";"


@dataclass
class EmulatorSettings:
    # yuzu-cmd location; looked up on PATH when unset
    yuzu_cmd_path: Optional[Path] = None
    gdbstub_port: int = 6543
    # Keep Debug level for the Debug_Emulated channel or the program output is lost.
    log_filter: str = "*:Debug"


@dataclass
class DebuggerSettings:
    gdb_location: Optional[Path] = None
    gdbinit_commands: List[str] = field(default_factory=list)
    rust_pretty_printers_dir: Optional[Path] = None


@dataclass
class BuildSettings:
    toolchain: str = "horizon-stage1"
    target: str = "aarch64-nintendo-switch-homebrew"
    linker_script: Optional[str] = "aarch64_nintendo_switch_homebrew_linker_script.ld"
    converter: str = "elf2nro"


@dataclass
class Config:
    emulator: EmulatorSettings = field(default_factory=EmulatorSettings)
    debugger: DebuggerSettings = field(default_factory=DebuggerSettings)
    build: BuildSettings = field(default_factory=BuildSettings)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for section in payload.values():
            for key, value in section.items():
                if isinstance(value, Path):
                    section[key] = str(value)
        return payload


_SECTIONS = {
    "EMULATOR": "emulator",
    "DEBUGGER": "debugger",
    "BUILD": "build",
}


def validate_port(value: int, what: str = "port") -> int:
    if not 0 < value < 65536:
        raise ConfigError(f"{what}: port {value} out of range")
    return value


def _unwrap_optional(hint: Any) -> Tuple[Any, bool]:
    if get_origin(hint) is Union:
        members = get_args(hint)
        rest = [member for member in members if member is not type(None)]
        if len(rest) == 1:
            return rest[0], len(rest) < len(members)
    return hint, False


def _coerce(section: str, name: str, hint: Any, raw: str) -> Any:
    kind, optional = _unwrap_optional(hint)
    if kind is Path:
        return Path(raw).expanduser() if raw else None
    if get_origin(kind) is list:
        return [item.strip() for item in raw.split(LIST_SEPARATOR) if item.strip()]
    if kind is int:
        try:
            value = int(raw, 0)
        except ValueError as exc:
            raise ConfigError(f"{section}.{name}: expected an integer, got {raw!r}") from exc
        if name.endswith("_port"):
            validate_port(value, f"{section}.{name}")
        return value
    if optional and not raw:
        return None
    return raw


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build the configuration from defaults and ``HORIZON_RUN_<SECTION>__<KEY>`` variables."""
    env = os.environ if environ is None else environ
    config = Config()
    for env_section, attr in _SECTIONS.items():
        section = getattr(config, attr)
        hints = get_type_hints(type(section))
        updates: Dict[str, Any] = {}
        for item in fields(section):
            key = f"{ENV_PREFIX}{env_section}__{item.name.upper()}"
            if key not in env:
                continue
            updates[item.name] = _coerce(attr, item.name, hints[item.name], env[key])
            LOGGER.debug("config override %s.%s from %s", attr, item.name, key)
        if updates:
            setattr(config, attr, replace(section, **updates))
    return config


def dump_yaml(config: Config) -> str:
    return yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)


def render_table(config: Config) -> str:
    rows = []
    for section, values in config.to_dict().items():
        for key, value in values.items():
            if isinstance(value, list):
                value = "; ".join(value) if value else "-"
            rows.append([section, key, "-" if value is None else value])
    return tabulate(rows, headers=["section", "key", "value"], tablefmt="simple")


__all__ = [
    "Config",
    "EmulatorSettings",
    "DebuggerSettings",
    "BuildSettings",
    "ENV_PREFIX",
    "load_config",
    "validate_port",
    "dump_yaml",
    "render_table",
]
