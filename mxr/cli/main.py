import click
from dotenv import load_dotenv

from mxr import __version__
from mxr.cli.commands.cache import register as register_cache
from mxr.cli.commands.configs import register as register_configs
from mxr.cli.commands.lookup import register as register_lookup
from mxr.cli.commands.scan import register as register_scan

load_dotenv()


@click.group()
@click.version_option(__version__, prog_name="mxr")
def cli():
    """MyBatis mapper cross-reference CLI."""


register_scan(cli)
register_lookup(cli)
register_configs(cli)
register_cache(cli)


if __name__ == "__main__":
    cli()
