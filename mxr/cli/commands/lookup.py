import asyncio
from typing import Optional

import click

from mxr.cli.core.lifecycle import with_command_lifecycle
from mxr.cli.core.project import echo_json, open_scanner, resolve_project_root
from mxr.models.mapping import MapperMapping
from mxr.services.mapping_index import MappingIndex


def find_mapping(
    index: MappingIndex,
    namespace: Optional[str],
    class_name: Optional[str],
    java_path: Optional[str],
    xml_path: Optional[str],
) -> Optional[MapperMapping]:
    if namespace:
        return index.get_by_namespace(namespace)
    if class_name:
        return index.get_by_class_name(class_name)
    if java_path:
        return index.get_by_java_path(java_path)
    return index.get_by_xml_path(xml_path)


def print_mapping(mapping: MapperMapping) -> None:
    click.echo(f"Namespace: {mapping.namespace}")
    click.echo(f"Java:      {mapping.java_path}")
    click.echo(f"XML:       {mapping.xml_path or '-'}")
    if not mapping.methods:
        return
    click.echo(f"\n{'SQL id':<40} {'XML position':<15}")
    click.echo("-" * 55)
    for name, method in sorted(mapping.methods.items()):
        position = f"{method.xml_position.line + 1}:{method.xml_position.column + 1}" if method.xml_position else "-"
        click.echo(f"{name:<40} {position:<15}")


@click.command(name="lookup")
@click.option("--project-root", help="Path to the project root (default: MXR_PROJECT_ROOT or current directory)")
@click.option("--namespace", help="Fully qualified mapper namespace")
@click.option("--class-name", help="Fully qualified or simple mapper class name")
@click.option("--java-path", type=click.Path(), help="Java mapper file path")
@click.option("--xml-path", type=click.Path(), help="XML mapper file path")
@click.option("--json", "as_json", is_flag=True, help="Print the mapping as JSON")
@with_command_lifecycle("lookup")
def lookup_command(project_root, namespace, class_name, java_path, xml_path, as_json):
    """Scan the project and show the mapping for one mapper."""

    given = [value for value in (namespace, class_name, java_path, xml_path) if value]
    if len(given) != 1:
        raise click.UsageError("Specify exactly one of --namespace, --class-name, --java-path, --xml-path.")

    root = resolve_project_root(project_root)
    scanner = open_scanner(root, command="lookup")
    try:
        if asyncio.run(scanner.scan()) is None:
            raise click.ClickException("Scan failed, see log output for details.")
        mapping = find_mapping(scanner.index, namespace, class_name, java_path, xml_path)
    finally:
        scanner.shutdown()

    if mapping is None:
        raise click.ClickException(f"No mapping found for {given[0]}")

    if as_json:
        echo_json(mapping)
    else:
        print_mapping(mapping)

    return {"success": True, "message": mapping.namespace, "stats": {"methods": len(mapping.methods)}}


def register(cli: click.Group) -> None:
    """Attach the lookup command to the given CLI group."""
    cli.add_command(lookup_command)


__all__ = ["register", "find_mapping"]
