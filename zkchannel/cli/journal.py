"""
zkchannel journal — verify a signed event journal.

Exit codes:
    0  Journal fully valid (sequence + chain + signatures)
    1  Journal has violations
    2  Error (file missing, malformed JSON)
"""

import sys
from collections import Counter
from pathlib import Path

import click

from zkchannel.core.exceptions import JournalError
from zkchannel.ledger.journal import load_entries, verify_entries


@click.command(name="journal")
@click.argument("path", type=click.Path(exists=False))
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
def journal_command(path: str, quiet: bool) -> None:
    """
    Verify a JSONL event journal — sequence, causal chain, signatures.

    PATH is a journal.jsonl file (or the directory holding one).
    """
    journal_file = Path(path)
    if journal_file.is_dir():
        journal_file = journal_file / "journal.jsonl"
    if not journal_file.exists():
        if not quiet:
            click.echo(f"Error: journal not found: {journal_file}", err=True)
        sys.exit(2)

    try:
        entries = load_entries(journal_file)
    except JournalError as e:
        if not quiet:
            click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    violations = verify_entries(entries)
    if quiet:
        sys.exit(0 if not violations else 1)

    channels = {e.channel_id for e in entries if e.channel_id is not None}
    click.echo(f"  journal     {journal_file}")
    click.echo(f"  entries     {len(entries)}  ({len(channels)} channels)")
    for event_type, count in sorted(Counter(e.event_type for e in entries).items()):
        click.echo(f"    {event_type:<22} {count}")

    if violations:
        click.echo(f"  INVALID     {len(violations)} violation(s)")
        for violation in violations:
            click.echo(f"    {violation}")
        sys.exit(1)

    click.echo("  VALID       chain intact, all signatures verified")
    sys.exit(0)
