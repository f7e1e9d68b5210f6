"""
zkchannel config — validate a protocol configuration file.
"""

import sys

import click

from zkchannel.core.exceptions import ConfigurationError
from zkchannel.runtime.config import ProtocolConfig


@click.command(name="config")
@click.argument("path", type=click.Path(exists=False))
def config_command(path: str) -> None:
    """
    Validate a protocol YAML file and print the effective settings.

    Exit code 0 when valid, 2 when the file is missing or invalid.
    """
    try:
        config = ProtocolConfig.from_yaml(path)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    for key, value in config.to_dict().items():
        if key == "verifier_keys":
            bound = ", ".join(str(size) for size in sorted(value)) or "none"
            click.echo(f"  {key:<17} {bound}")
        else:
            click.echo(f"  {key:<17} {value}")
    click.echo("  OK")
