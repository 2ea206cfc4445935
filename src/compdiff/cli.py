from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .config import Settings
from .driver import RoundRecord, drive
from .ledger import RoundLedger
from .report import render_round, render_summary
from .resolver import InterpretedScript, ProgramRef, ResolutionError, build_invocation, resolve

app = typer.Typer(help="Differential stress testing: compare a program against reference programs.")
console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

GENERATOR_OPTION = typer.Option(
    ..., "--generator", "-g", exists=True, dir_okay=False, help="the test-case generator program"
)
PROGRAM_OPTION = typer.Option(
    ..., "--program", "-p", exists=True, dir_okay=False, help="the program to be examined"
)
REFERENCE_OPTION = typer.Option(
    None, "--reference", "--ref", "-r", exists=True, dir_okay=False, help="the reference program/s"
)
ROUNDS_OPTION = typer.Option(None, "--rounds", "-c", min=1, help="how many rounds to run")
TIME_LIMIT_OPTION = typer.Option(
    None,
    "--time-limit",
    "-t",
    min=0.0,
    help="time limit in seconds for the examined program (references are left alone)",
)
MEMORY_LIMIT_OPTION = typer.Option(
    None,
    "--memory-limit",
    "-m",
    min=1,
    help="memory limit in kilobytes for the examined program (references are left alone)",
)
CONFIG_OPTION = typer.Option(None, "--config", exists=True, dir_okay=False)
LEDGER_OPTION = typer.Option(None, "--ledger", dir_okay=False, help="append rounds to a JSONL ledger")
JSON_OPTION = typer.Option(False, "--json", help="print the summary as JSON")
STOP_OPTION = typer.Option(False, "--stop-on-failure", help="stop after the first bad round")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v")
RESOLVE_PATH_ARGUMENT = typer.Argument(..., help="program file to resolve")
LEDGER_PATH_ARGUMENT = typer.Argument(..., exists=True, dir_okay=False, help="ledger file to check")


@app.callback()
def main() -> None:
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_settings(config: Optional[Path]) -> Settings:
    if config is None:
        return Settings()
    data = orjson.loads(config.read_bytes())
    return Settings(**data)


def _resolve(path: Path, settings: Settings) -> ProgramRef:
    try:
        return resolve(path, settings.interpreters, settings.native_extensions)
    except ResolutionError as exc:
        err_console.print(f"[red]error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc


@app.command("run")
def run_cmd(
    generator: Path = GENERATOR_OPTION,
    program: Path = PROGRAM_OPTION,
    reference: Optional[List[Path]] = REFERENCE_OPTION,
    rounds: Optional[int] = ROUNDS_OPTION,
    time_limit: Optional[float] = TIME_LIMIT_OPTION,
    memory_limit: Optional[int] = MEMORY_LIMIT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    ledger_path: Optional[Path] = LEDGER_OPTION,
    json_output: bool = JSON_OPTION,
    stop_on_failure: bool = STOP_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    _configure_logging(verbose)
    settings = _load_settings(config)
    if rounds is not None:
        settings = settings.model_copy(update={"rounds": rounds})
    if time_limit is not None:
        if time_limit <= 0:
            raise typer.BadParameter("time limit must be positive", param_hint="--time-limit")
        settings = settings.model_copy(update={"time_limit_s": time_limit})
    if memory_limit is not None:
        settings = settings.model_copy(update={"memory_limit_kb": memory_limit})

    generator_ref = _resolve(generator, settings)
    candidate_ref = _resolve(program, settings)
    reference_refs = [_resolve(path, settings) for path in reference or []]
    limits = settings.limits()

    ledger = RoundLedger(ledger_path) if ledger_path is not None else None
    if ledger is not None:
        ledger.start_run(
            generator_ref, candidate_ref, reference_refs, limits, settings.rounds, __version__
        )

    categories: List[Dict[str, Any]] = []

    def on_round(record: RoundRecord) -> None:
        categories.append({"index": record.index, "category": record.category})
        if ledger is not None:
            ledger.append_round(record)
        if not json_output:
            render_round(console, record)

    summary = drive(
        generator_ref,
        candidate_ref,
        reference_refs,
        limits=limits,
        rounds=settings.rounds,
        kill_grace_s=settings.kill_grace_s,
        on_round=on_round,
        stop_on_failure=stop_on_failure,
    )
    if ledger is not None:
        ledger.end_run(summary)

    if json_output:
        payload = {"ok": summary.ok, "summary": summary.model_dump(), "rounds": categories}
        typer.echo(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode("utf-8"))
    else:
        render_summary(console, summary)
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command("resolve")
def resolve_cmd(
    path: Path = RESOLVE_PATH_ARGUMENT,
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    settings = _load_settings(config)
    ref = _resolve(path, settings)
    invocation = build_invocation(ref)
    kind = "script" if isinstance(ref.kind, InterpretedScript) else "native"
    console.print(f"kind: {kind}")
    console.print(f"argv: {' '.join(invocation.argv)}", markup=False)
    console.print(f"cwd: {invocation.cwd}", markup=False)


@app.command("verify-ledger")
def verify_ledger_cmd(path: Path = LEDGER_PATH_ARGUMENT) -> None:
    check = RoundLedger.verify(path)
    if check.ok:
        console.print(f"[green]ok[/green]: {check.runs} run(s), {check.rounds} round(s)")
        return
    console.print(f"[red]broken[/red]: {escape(check.reason)}")
    raise typer.Exit(code=1)


@app.command("version")
def version_cmd() -> None:
    console.print(f"compdiff {__version__}")
