import asyncio

import click

from mxr.cli.core.lifecycle import with_command_lifecycle
from mxr.cli.core.project import echo_json, open_scanner, resolve_project_root


async def _resolve(scanner):
    return await asyncio.gather(
        scanner.config_resolver.resolve_all_configs(),
        scanner.location_resolver.resolve_xml_locations(),
    )


@click.command(name="configs")
@click.option("--project-root", help="Path to the project root (default: MXR_PROJECT_ROOT or current directory)")
@click.option("--json", "as_json", is_flag=True, help="Print configs, sources and locations as JSON")
@with_command_lifecycle("configs")
def configs_command(project_root, as_json):
    """Show resolved @MapperScan packages and XML mapper locations."""

    root = resolve_project_root(project_root)
    scanner = open_scanner(root, command="configs")
    try:
        resolution, locations = asyncio.run(_resolve(scanner))
    finally:
        scanner.shutdown()

    if as_json:
        echo_json({
            "configs": [config.model_dump(mode="json") for config in resolution.configs],
            "sources": [source.model_dump(mode="json") for source in resolution.sources],
            "stats": resolution.stats,
            "xmlLocations": locations,
        })
    else:
        click.echo("@MapperScan configuration")
        click.echo("=" * 60)
        if not resolution.configs:
            click.echo("  (none found, heuristic scan will be used)")
        for config in resolution.configs:
            click.echo(f"  {', '.join(config.base_packages)}")
            click.echo(f"      from {config.source_file}")
        if resolution.sources:
            click.echo("\nSources:")
            for source in resolution.sources:
                click.echo(f"  [{source.priority}] {source.type}/{source.location}: {source.count} config(s)")
        click.echo("\nXML locations:")
        if not locations:
            click.echo("  (none configured)")
        for location in locations:
            click.echo(f"  {location}")

    return {
        "success": True,
        "message": "Configs resolved",
        "stats": {"configs": len(resolution.configs), "locations": len(locations)},
    }


def register(cli: click.Group) -> None:
    """Attach the configs command to the given CLI group."""
    cli.add_command(configs_command)


__all__ = ["register"]
