"""`pack diff` command."""

from __future__ import annotations

from pathlib import Path

from ..diff import DiffReport, diff_packs
from ..ledger import WitnessLedger
from ..refusal import PackRefusal
from ._output import console, emit_refusal, print_json, witness


def _print_report(report: DiffReport) -> None:
    out = console()
    out.print(f"pack diff: {report.outcome}", style="bold", markup=False)
    out.print(f"  a: {report.a_pack_id}", markup=False)
    out.print(f"  b: {report.b_pack_id}", markup=False)
    for label, entries, sign, style in (
        ("added", report.added, "+", "green"),
        ("removed", report.removed, "-", "red"),
        ("changed", report.changed, "~", "yellow"),
    ):
        if not entries:
            continue
        out.print(f"  {label}: {len(entries)}", markup=False)
        for e in entries:
            out.print(f"    {sign} {e.path}", style=style, markup=False)
    if report.unchanged:
        out.print(f"  unchanged: {report.unchanged}", style="dim", markup=False)


def run_diff(
    a_dir: Path,
    b_dir: Path,
    *,
    output_json: bool = False,
    ledger: WitnessLedger | None = None,
) -> int:
    try:
        report = diff_packs(a_dir, b_dir)
    except PackRefusal as refusal:
        witness(ledger, "diff", "REFUSAL", None)
        return emit_refusal(refusal, output_json=output_json)

    witness(ledger, "diff", report.outcome, None)
    if output_json:
        print_json(report.to_dict())
    else:
        _print_report(report)
    return report.exit_code
