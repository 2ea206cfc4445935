from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .driver import RoundRecord, RunSummary
from .schemas import (
    AllMatch,
    CandidateFailure,
    CandidateMismatch,
    Completed,
    Failure,
    GeneratorFailure,
    ReferenceFailures,
    ReferenceInconsistency,
    Success,
)


def _section(console: Console, text: str, ok: bool) -> None:
    mark = "[green]✔[/green]" if ok else "[red]❌[/red]"
    console.print(f"{mark} -- {escape(text)}")


def _raw(console: Console, text: str) -> None:
    console.print(text, markup=False, highlight=False)


def _print_input(console: Console, input_text: str) -> None:
    console.print("\n[bold]::: input:[/bold]")
    _raw(console, input_text)


def _print_outputs(console: Console, title: str, outcomes: Iterable[Success]) -> None:
    for outcome in outcomes:
        console.print(f"\n[bold]::: {title} ({escape(outcome.program)}) output:[/bold]")
        _raw(console, outcome.text)


def render_failure(console: Console, failure: Failure) -> None:
    console.print(f"  👎 {escape(failure.describe())}")


def render_round(console: Console, record: RoundRecord) -> None:
    console.print(f"== round {record.index}")
    result = record.result
    if isinstance(result, GeneratorFailure):
        render_failure(console, result.failure)
        return
    if isinstance(result, CandidateFailure):
        render_failure(console, result.failure)
        console.print("with the following input:")
        _raw(console, result.input_text)
        return
    if isinstance(result, ReferenceFailures):
        for failure in result.failures:
            render_failure(console, failure)
        return
    if not isinstance(result, Completed):
        raise TypeError(f"unknown round result: {result!r}")

    verdict = record.verdict
    if verdict is None:
        console.print(
            "  🚧 [yellow]warning[/yellow] : skipping reference checks as no references were supplied..."
        )
    elif isinstance(verdict, AllMatch):
        _section(console, "Awesome! All references match the output!", True)
    elif isinstance(verdict, CandidateMismatch):
        disagreeing = [ref for ref in result.references if ref.text != result.candidate.text]
        _section(console, f"there are {len(disagreeing)} mismatched testcases!", False)
        _print_input(console, result.input_text)
        _print_outputs(console, "program", [result.candidate])
        _print_outputs(console, "reference program", disagreeing)
    elif isinstance(verdict, ReferenceInconsistency):
        console.print(
            f"[bold red]❌ -- 🚧 CRITICAL ERROR 🚧 there are {len(result.references)} "
            "mismatched references!!!![/bold red]"
        )
        _print_input(console, result.input_text)
        _print_outputs(console, "reference program", result.references)


def render_summary(console: Console, summary: RunSummary) -> None:
    table = Table(title="compdiff summary")
    table.add_column("outcome")
    table.add_column("rounds", justify="right")
    for name, value in summary.model_dump().items():
        if name == "rounds" or not value:
            continue
        table.add_row(name.replace("_", " "), str(value))
    table.add_row("[bold]total[/bold]", f"[bold]{summary.rounds}[/bold]")
    console.print(table)
