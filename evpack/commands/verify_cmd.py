"""`pack verify` command."""

from __future__ import annotations

from pathlib import Path

from ..ledger import WitnessLedger
from ..outcome import VerifyOutcome, VerifyReport
from ..verify import verify_pack
from ._output import console, emit_refusal, print_json, witness

_STYLES = {
    VerifyOutcome.OK: "bold green",
    VerifyOutcome.INVALID: "bold red",
}


def _print_report(report: VerifyReport) -> None:
    out = console()
    out.print(f"{report.outcome.value} {report.pack_id}", style=_STYLES.get(report.outcome), markup=False)
    for name, value in report.checks.to_dict().items():
        mark = value if isinstance(value, str) else ("ok" if value else "FAIL")
        out.print(f"  {name}: {mark}", style="dim", markup=False)
    for finding in report.findings:
        line = f"  {finding.code.value}"
        if finding.path is not None:
            line += f" {finding.path}"
        if finding.expected is not None or finding.actual is not None:
            line += f" (expected {finding.expected}, actual {finding.actual})"
        out.print(line, style="red", markup=False)


def run_verify(
    pack_dir: Path,
    *,
    output_json: bool = False,
    ledger: WitnessLedger | None = None,
) -> int:
    report = verify_pack(pack_dir)
    witness(ledger, "verify", report.outcome.value, report.pack_id)

    if output_json:
        print_json(report.to_dict())
        return report.exit_code

    if report.refusal is not None:
        emit_refusal(report.refusal, output_json=False)
        return report.exit_code

    _print_report(report)
    return report.exit_code
