"""Command-line interface for ipyjob.

Commands are organized into separate modules under ipyjob.cli.commands.
"""

import click

from ipyjob import __version__


@click.group()
@click.version_option(version=__version__, prog_name="ipyjob")
def cli():
    """ipyjob - run code and notebooks on Jupyter kernels as jobs."""


# These imports must come after cli is defined, hence noqa: E402
from ipyjob.cli.commands.config import config  # noqa: E402
from ipyjob.cli.commands.run import kernels, run  # noqa: E402

cli.add_command(run)
cli.add_command(kernels)
cli.add_command(config)


if __name__ == "__main__":
    cli()
