"""CLI entrypoint for evpack."""

import logging
import sys
from pathlib import Path

import click

from . import TOOL_NAME, __version__


def _ledger(ctx: click.Context):
    """Witness ledger for this invocation, or None when witnessing is off."""
    from .ledger import WitnessLedger

    if ctx.obj["no_witness"] or not ctx.obj["config"].witness_enabled:
        return None
    return WitnessLedger(ctx.obj["config"].witness_path)


def _validate_created(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    from .manifest import format_created

    try:
        return format_created(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name=TOOL_NAME)
@click.option("--describe", is_flag=True, help="Print the operator description as JSON and exit")
@click.option("--schema", "show_schema", is_flag=True, help="Print JSON Schemas for the manifest and verify report and exit")
@click.option("--no-witness", is_flag=True, help="Do not append to the witness ledger")
@click.option("--verbose", is_flag=True, help="Enable debug logging on stderr")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="TOML config file (defaults to $EVPACK_CONFIG or ./.evpack.toml)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    describe: bool,
    show_schema: bool,
    no_witness: bool,
    verbose: bool,
    config_path: Path | None,
) -> None:
    """pack - seal artifacts into immutable, self-verifiable evidence packs.

    Seal files into a content-addressed pack, verify it bit-exactly, and
    compare two packs.
    """
    from .config import ConfigError, load_config

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if describe or show_schema:
        from .commands._output import print_json
        from .describe import operator_json, schema_json

        print_json(operator_json() if describe else schema_json())
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["no_witness"] = no_witness


@cli.command()
@click.argument("inputs", nargs=-1, type=click.Path(exists=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Destination directory (default: <output_root>/<pack_id>)",
)
@click.option("--note", type=str, default=None, help="Free-form note stored in the manifest")
@click.option(
    "--created",
    type=str,
    default=None,
    callback=_validate_created,
    metavar="TIMESTAMP",
    help="Fixed creation time (ISO 8601, UTC if no offset) for reproducible sealing",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Parallel copy/hash workers")
@click.option("--json", "output_json", is_flag=True, help="Output result as JSON")
@click.pass_context
def seal(
    ctx: click.Context,
    inputs: tuple[Path, ...],
    output: Path | None,
    note: str | None,
    created: str | None,
    workers: int | None,
    output_json: bool,
) -> None:
    """Seal files and directories into a new evidence pack.

    Examples:

        pack seal nov.lock.json report.json

        pack seal artifacts/ --note "November close" --output out/nov
    """
    from .commands.seal_cmd import run_seal

    config = ctx.obj["config"]
    exit_code = run_seal(
        list(inputs),
        output=output,
        note=note,
        created=created,
        output_root=config.output_root,
        workers=workers or config.workers,
        output_json=output_json,
        ledger=_ledger(ctx),
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("pack_dir", type=click.Path(exists=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output the pack.verify.v0 report as JSON")
@click.pass_context
def verify(ctx: click.Context, pack_dir: Path, output_json: bool) -> None:
    """Verify a pack: members, closed set, pack_id, and member schemas.

    Exit codes: 0 OK, 1 INVALID, 2 REFUSAL.
    """
    from .commands.verify_cmd import run_verify

    exit_code = run_verify(pack_dir, output_json=output_json, ledger=_ledger(ctx))
    sys.exit(exit_code)


@cli.command()
@click.argument("pack_a", type=click.Path(exists=False, path_type=Path))
@click.argument("pack_b", type=click.Path(exists=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output the pack.diff.v0 report as JSON")
@click.pass_context
def diff(ctx: click.Context, pack_a: Path, pack_b: Path, output_json: bool) -> None:
    """Compare the manifests of two packs.

    Exit codes: 0 NO_CHANGES, 1 CHANGES, 2 REFUSAL.
    """
    from .commands.diff_cmd import run_diff

    exit_code = run_diff(pack_a, pack_b, output_json=output_json, ledger=_ledger(ctx))
    sys.exit(exit_code)


@cli.group()
def witness() -> None:
    """Query the witness ledger."""
    pass


def _witness_ledger(ctx: click.Context):
    from .ledger import WitnessLedger

    return WitnessLedger(ctx.obj["config"].witness_path)


@witness.command("query")
@click.option("--json", "output_json", is_flag=True, help="Output records as JSON")
@click.pass_context
def witness_query(ctx: click.Context, output_json: bool) -> None:
    """List all witness records for this tool."""
    from .commands.witness_cmd import run_witness_query

    sys.exit(run_witness_query(_witness_ledger(ctx), output_json=output_json))


@witness.command("last")
@click.option("--json", "output_json", is_flag=True, help="Output the record as JSON")
@click.pass_context
def witness_last(ctx: click.Context, output_json: bool) -> None:
    """Show the most recent witness record."""
    from .commands.witness_cmd import run_witness_last

    sys.exit(run_witness_last(_witness_ledger(ctx), output_json=output_json))


@witness.command("count")
@click.option("--json", "output_json", is_flag=True, help="Output the count as JSON")
@click.pass_context
def witness_count(ctx: click.Context, output_json: bool) -> None:
    """Count witness records."""
    from .commands.witness_cmd import run_witness_count

    sys.exit(run_witness_count(_witness_ledger(ctx), output_json=output_json))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
