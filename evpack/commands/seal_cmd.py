"""`pack seal` command."""

from __future__ import annotations

from pathlib import Path

from ..ledger import WitnessLedger
from ..refusal import PackRefusal
from ..seal import DEFAULT_OUTPUT_ROOT, seal
from ._output import console, emit_refusal, print_json, witness


def run_seal(
    inputs: list[Path],
    *,
    output: Path | None = None,
    note: str | None = None,
    created: str | None = None,
    output_root: Path = DEFAULT_OUTPUT_ROOT,
    workers: int = 1,
    output_json: bool = False,
    ledger: WitnessLedger | None = None,
) -> int:
    try:
        result = seal(
            inputs,
            output,
            note=note,
            created=created,
            output_root=output_root,
            workers=workers,
        )
    except PackRefusal as refusal:
        witness(ledger, "seal", "REFUSAL", None)
        return emit_refusal(refusal, output_json=output_json)

    witness(ledger, "seal", result.outcome, result.pack_id)

    if output_json:
        print_json(result.to_dict())
    else:
        out = console()
        out.print(f"{result.outcome} {result.pack_id}", style="bold green", markup=False)
        out.print(f"  dir: {result.output_dir}", markup=False)
        out.print(f"  members: {result.member_count}", markup=False)
    return result.exit_code
