"""horizon-run CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List

from .config import Config, dump_yaml, load_config, render_table, validate_port
from .converter import BinaryConverter, Elf2NroConverter, PassthroughConverter
from .errors import ConfigError, HorizonRunError, during, exit_code_for, format_error_chain
from .runner import run_target

LOG = logging.getLogger("horizon_run.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _port(text: str) -> int:
    try:
        return validate_port(int(text, 0))
    except (ValueError, ConfigError) as exc:
        raise argparse.ArgumentTypeError(f"invalid port {text!r}") from exc


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("program", type=Path, help="ELF file to run (or NRO with --no-convert)")
    parser.add_argument("--yuzu-cmd-path", type=Path, help="Use this yuzu-cmd instead of one from PATH")
    parser.add_argument("--gdbstub-port", type=_port, help="Enable the gdbstub on this port")
    parser.add_argument("--log-path", type=Path, help="Write all emulator logs to this file (discarded by default)")
    parser.add_argument("--log-filter", help="Override log_filter used in the emulator config")
    parser.add_argument("--no-convert", action="store_true", help="Pass the program to the emulator unchanged")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horizon-run",
        description="Run homebrew in yuzu, extracting the program output from the emulator logs",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("HORIZON_RUN_LOG", "INFO"),
        help="Logging level (default INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Convert the program and run it inside yuzu")
    _add_run_options(run)

    debug = sub.add_parser("debug", help="Run inside yuzu with gdb attached to the gdbstub")
    _add_run_options(debug)
    debug.add_argument("--gdb-path", type=Path, help="Use this gdb instead of gdb-multiarch/gdb from PATH")
    debug.add_argument("--symbols", type=Path, help="Symbols file for gdb (defaults to the program)")

    show = sub.add_parser("print-config", help="Print the resolved configuration")
    show.add_argument("--format", choices=("yaml", "table"), default="yaml")
    return parser


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    emulator = config.emulator
    if args.yuzu_cmd_path is not None:
        emulator = replace(emulator, yuzu_cmd_path=args.yuzu_cmd_path)
    if args.log_filter:
        emulator = replace(emulator, log_filter=args.log_filter)
    if args.gdbstub_port is not None:
        emulator = replace(emulator, gdbstub_port=args.gdbstub_port)
    debugger = config.debugger
    if getattr(args, "gdb_path", None) is not None:
        debugger = replace(debugger, gdb_location=args.gdb_path)
    return replace(config, emulator=emulator, debugger=debugger)


def _converter_for(config: Config, args: argparse.Namespace) -> BinaryConverter:
    if args.no_convert:
        return PassthroughConverter()
    return Elf2NroConverter(config.build.converter)


def _run_command(config: Config, args: argparse.Namespace) -> int:
    config = _apply_overrides(config, args)
    attach = args.command == "debug"
    with during(f"executing {args.command} subcommand"):
        outcome = run_target(
            config,
            args.program,
            log_path=args.log_path,
            gdbstub_port=args.gdbstub_port,
            attach_debugger=attach,
            symbols_file=getattr(args, "symbols", None),
            converter=_converter_for(config, args),
        )
        outcome.raise_for_failure()
    return 0


def _print_config(config: Config, args: argparse.Namespace) -> int:
    if args.format == "table":
        print(render_table(config))
    else:
        print(dump_yaml(config), end="")
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        with during("loading config"):
            config = load_config()
        if args.command == "print-config":
            return _print_config(config, args)
        return _run_command(config, args)
    except HorizonRunError as exc:
        sys.stdout.flush()
        print(format_error_chain(exc), file=sys.stderr)
        return exit_code_for(exc)
    except KeyboardInterrupt:
        print()
        return 130


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
