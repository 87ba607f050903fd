"""`pack witness` commands."""

from __future__ import annotations

from ..ledger import WitnessLedger
from ._output import console, print_json

_EMPTY = "No witness records found."


def run_witness_query(ledger: WitnessLedger, *, output_json: bool = False) -> int:
    records = ledger.read_all()
    if output_json:
        print_json([r.to_dict() for r in records])
        return 0
    out = console()
    if not records:
        out.print(_EMPTY, markup=False)
    for r in records:
        out.print(r.to_human(), markup=False)
    return 0


def run_witness_last(ledger: WitnessLedger, *, output_json: bool = False) -> int:
    record = ledger.last()
    if output_json:
        print_json(record.to_dict() if record else None)
    else:
        console().print(record.to_human() if record else _EMPTY, markup=False)
    return 0


def run_witness_count(ledger: WitnessLedger, *, output_json: bool = False) -> int:
    n = ledger.count()
    if output_json:
        print_json({"count": n})
    else:
        console().print(f"{n} witness record(s)", markup=False)
    return 0
