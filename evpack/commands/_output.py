"""Shared presentation helpers for command modules."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console

from ..ledger import WitnessLedger, record_outcome
from ..refusal import REFUSAL_EXIT_CODE, PackRefusal


def console(*, stderr: bool = False) -> Console:
    # soft_wrap keeps long pack ids and paths on one line.
    return Console(stderr=stderr, highlight=False, soft_wrap=True)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False))


def emit_refusal(refusal: PackRefusal, *, output_json: bool) -> int:
    if output_json:
        print_json(refusal.to_envelope())
        return REFUSAL_EXIT_CODE

    err = console(stderr=True)
    err.print(f"REFUSAL {refusal.code.value}: {refusal.message}", style="bold red", markup=False)
    if refusal.reason:
        err.print(f"  {refusal.reason}", markup=False)
    for key, value in sorted(refusal.detail.items()):
        if key == "error":
            continue
        err.print(f"  {key}: {value}", style="dim", markup=False)
    err.print(f"  next: {refusal.code.next_command}", style="dim", markup=False)
    return REFUSAL_EXIT_CODE


def witness(ledger: WitnessLedger | None, command: str, outcome: str, pack_id: str | None) -> None:
    if ledger is None:
        return
    if not record_outcome(command, outcome, pack_id, ledger=ledger):
        console(stderr=True).print(
            f"warning: could not write witness record to {ledger.path}",
            style="yellow",
            markup=False,
        )
