import click

from mxr.cli.core.lifecycle import with_command_lifecycle
from mxr.cli.core.project import load_settings, resolve_project_root
from mxr.services.index_cache import IndexCache
from mxr.utils.logger import get_logger


@click.command(name="cache-clear")
@click.option("--project-root", help="Path to the project root (default: MXR_PROJECT_ROOT or current directory)")
@with_command_lifecycle("cache-clear")
def cache_clear_command(project_root):
    """Delete the persistent index cache of a project."""

    root = resolve_project_root(project_root)
    settings = load_settings(root)
    cache = IndexCache(root, settings.cache_dir, logger=get_logger("mxr", command="cache-clear"))
    entries = cache.load()
    cache.clear_cache()
    click.echo(f"Cleared {entries} cache entries ({cache.index_path})")

    return {"success": True, "message": "Cache cleared", "stats": {"entries": entries}}


def register(cli: click.Group) -> None:
    """Attach the cache-clear command to the given CLI group."""
    cli.add_command(cache_clear_command)


__all__ = ["register"]
