"""Command-line entry points for the seller sales report.

All orchestration in this module is limited to argparse wiring and handing
the parsed arguments to the business layer. Keeping the CLI thin lets tests,
scripts, or any alternative front-end reuse the same parser configuration.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, data_manager, log, set_verbosity


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="sales-report",
        description="Per-seller sales report with profit ranking and bonuses.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log skipped receipts and line items.",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    specs = [
        register_report_command(subparsers),
        register_export_command(subparsers),
    ]
    for spec in specs:
        spec.register(subparsers)
    return build_command_table(specs)


def register_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``report``."""
    name = "report"
    help_text = "Log the ranked seller report."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_report)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export``."""
    name = "export"
    help_text = "Write the SellerReport sheet and save the workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--output",
            type=Path,
            default=None,
            help="Destination workbook (defaults to Report.OutputFile, then System.DataFile).",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    context = core_logic.load_runtime_context(target)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def format_report_line(rank: int, result: data_manager.RankedResult) -> str:
    """Render one report line for log output."""
    return (
        f"{rank:>3}. {result.seller_id} {result.name}: "
        f"revenue={result.revenue:.2f} profit={result.profit:.2f} "
        f"sales={result.sales_count} bonus={result.bonus:.2f} "
        f"top=[{data_manager.format_top_products(result.top_products)}]"
    )


def run_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Compute the report and log one line per seller."""
    results = core_logic.generate_report(context)
    log.info("Sales report for %s", context.settings.company_name)
    for rank, result in enumerate(results, start=1):
        log.info("%s", format_report_line(rank, result))
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Compute the report and persist it as the ``SellerReport`` sheet."""
    results = core_logic.generate_report(context)
    core_logic.persist_report(context, results, getattr(args, "output", None))
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.ReportInputError):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    set_verbosity(getattr(args, "verbose", False))
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
