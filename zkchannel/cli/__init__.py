"""
zkchannel/cli/__init__.py

zkchannel CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    zkchannel = "zkchannel.cli:cli"

Adding a new command:
    1. Create zkchannel/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import click

from zkchannel.cli.config import config_command
from zkchannel.cli.journal import journal_command
from zkchannel.cli.root import root_command


@click.group()
@click.version_option(package_name="zkchannel")
def cli() -> None:
    """
    zkchannel — state-channel settlement tooling.

    \b
    Commands:
      root      Compute the commitment root of a balance snapshot.
      journal   Verify a signed event journal — chain, signatures.
      config    Validate a protocol configuration file.

    \b
    Quick start:
      zkchannel root snapshot.json --index 3
      zkchannel journal .zkchannel/journal.jsonl --quiet && echo "clean"
      zkchannel config protocol.yaml
    """
    pass


cli.add_command(root_command)
cli.add_command(journal_command)
cli.add_command(config_command)
