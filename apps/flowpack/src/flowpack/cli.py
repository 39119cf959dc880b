"""CLI entry point for FlowPack."""

import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError

from . import __version__
from .config import get_settings
from .errors import FlowPackError
from .packaging.flow_package import export_flow_package, load_flow_manifest
from .solutions import get_solution, list_solutions
from .workflow.pipeline import export_solution

logger = logging.getLogger(__name__)


def _parse_inputs(values: tuple[str, ...]) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--input")
        inputs[key.strip()] = item
    return inputs


@click.group()
@click.version_option(version=__version__)
def cli():
    """FlowPack - build importable Power Automate solution packages."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("list")
def list_command():
    """List available example solutions."""
    for name in list_solutions():
        solution = get_solution(name)
        click.echo(f"  {name:<28} {solution.summary}")


@cli.command("export")
@click.option("--example", "-e", required=True, help="Catalogue solution to package")
@click.option("--solution-name", "-s", help="Solution unique name")
@click.option("--solution-version", "-v", help="Solution version (default 1.0.0.0)")
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path), help="Output directory")
@click.option("--managed", is_flag=True, help="Mark the solution as managed")
@click.option("--input", "inputs", multiple=True, metavar="KEY=VALUE", help="Dynamic solution input")
def export_command(
    example: str,
    solution_name: str | None,
    solution_version: str | None,
    output: Path | None,
    managed: bool,
    inputs: tuple[str, ...],
):
    """
    Build a solution package for a catalogue example.

    Examples:
        flowpack export -e scheduled-report --input report_url=https://example.com/report
        flowpack export -e sharepoint-approval-flow -s Approvals -v 1.2.0.0 \\
            --input document_library_url=https://contoso.sharepoint.com/sites/docs \\
            --input document_library_id=0f6e1f4e-1111-2222-3333-444455556666
    """
    try:
        zip_path = export_solution(
            example,
            _parse_inputs(inputs),
            output,
            solution_name=solution_name,
            version=solution_version,
            managed=managed,
        )
    except FlowPackError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Solution package created: {zip_path}")


@cli.command("flow-package")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(file_okay=False, path_type=Path), help="Output directory")
def flow_package_command(manifest: Path, output: Path | None):
    """Build a single-flow import package from a flow manifest JSON file."""
    try:
        flow_manifest = load_flow_manifest(manifest)
    except (json.JSONDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid flow manifest {manifest}: {e}") from e
    zip_path = export_flow_package(flow_manifest, output or get_settings().output_dir)
    click.echo(f"Flow package created: {zip_path}")


def main():
    cli()


if __name__ == "__main__":
    main()
