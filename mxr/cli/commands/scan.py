import asyncio

import click

from mxr.cli.core.lifecycle import format_duration, format_number, with_command_lifecycle
from mxr.cli.core.project import echo_json, open_scanner, resolve_project_root
from mxr.models.mapping import ScanResult


def print_scan_summary(result: ScanResult) -> None:
    click.echo("MyBatis Mapper Scan")
    click.echo("=" * 60)
    click.echo(f"  Mode:            {result.mode}")
    click.echo(f"  Java files:      {format_number(result.java_files)}")
    click.echo(f"  XML files:       {format_number(result.xml_files)}")
    click.echo(f"  Java mappers:    {format_number(result.java_mappers)}")
    click.echo(f"  XML mappers:     {format_number(result.xml_mappers)}")
    click.echo(f"  Mappings:        {format_number(result.mappings)} ({format_number(result.with_xml)} with XML)")
    click.echo(f"  Duration:        {format_duration(result.duration_seconds)}")
    if result.configs:
        click.echo("\n@MapperScan packages:")
        for config in result.configs:
            click.echo(f"  {', '.join(config.base_packages)}  <- {config.source_file}")
    if result.xml_locations:
        click.echo("\nXML locations:")
        for location in result.xml_locations:
            click.echo(f"  {location}")


@click.command(name="scan")
@click.option("--project-root", help="Path to the project root (default: MXR_PROJECT_ROOT or current directory)")
@click.option("--no-cache", is_flag=True, help="Ignore and do not update the persistent index cache")
@click.option("--json", "as_json", is_flag=True, help="Print the scan result and all mappings as JSON")
@with_command_lifecycle("scan")
def scan_command(project_root, no_cache, as_json):
    """Scan a project and pair Java mapper interfaces with XML mapper files."""

    root = resolve_project_root(project_root)
    scanner = open_scanner(root, use_cache=not no_cache, command="scan")
    try:
        result = asyncio.run(scanner.scan())
        if result is None:
            raise click.ClickException("Scan failed, see log output for details.")

        if as_json:
            echo_json({
                "result": result.model_dump(mode="json"),
                "mappings": [mapping.model_dump(mode="json") for mapping in scanner.index.get_all_mappings()],
            })
        else:
            print_scan_summary(result)
    finally:
        scanner.shutdown()

    return {
        "success": True,
        "message": "Scan completed",
        "stats": {"mappings": result.mappings, "with_xml": result.with_xml},
    }


def register(cli: click.Group) -> None:
    """Attach the scan command to the given CLI group."""
    cli.add_command(scan_command)


__all__ = ["register"]
