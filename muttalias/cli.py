"""CLI entry point for muttalias.

Commands:
    muttalias build    — scan mail directories and add new aliases
    muttalias filter   — drop impersonal addresses from an alias file
    muttalias purge    — drop every alias previously added by muttalias
"""

import logging
import sys
import time
from pathlib import Path

import click

from muttalias.config import ALIAS_FILE, HEADERS, KEEP_COMMA, MAX_AGE_DAYS
from muttalias.errors import MuttAliasError
from muttalias.schemas.alias import MergeOptions, MergeOutcome

logger = logging.getLogger("muttalias")


def _resolve_alias_file(alias_file: str) -> Path:
    """Fail loudly if no alias file is given or configured in mutt."""
    from muttalias.integrations.mutt import expand_path, resolve_alias_file

    if alias_file:
        return expand_path(alias_file)
    resolved = resolve_alias_file()
    if resolved is None:
        click.echo(
            "Error: No alias file given. Use --alias-file, set MUTT_ALIAS_FILE, "
            "or set alias_file in ~/.muttrc.",
            err=True,
        )
        sys.exit(1)
    return resolved


def _format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    if minutes:
        return f"{minutes}:{secs:02d}"
    return f"{secs}s"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """muttalias — build mutt aliases from the mail you sent."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# muttalias build
# ------------------------------------------------------------------


@cli.command()
@click.argument("directories", nargs=-1, required=True, type=click.Path())
@click.option(
    "--alias-file",
    "-a",
    default=ALIAS_FILE,
    help="Alias file (default: $alias_file from mutt).",
)
@click.option(
    "--max-age",
    "-d",
    type=click.IntRange(min=0),
    default=MAX_AGE_DAYS,
    show_default=True,
    help="Only use mail sent less than this many days ago (0 = unlimited).",
)
@click.option("--purge", "-p", is_flag=True, help="Purge aliases previously added by muttalias.")
@click.option("--filter", "-f", "filter_new", is_flag=True, help="Drop new addresses that look impersonal.")
@click.option("--filter-all", "-F", is_flag=True, help="Drop all addresses that look impersonal.")
@click.option("--backup", "-b", is_flag=True, help="Back up the current alias file to *.prev.")
@click.option("--new", "-n", is_flag=True, help="Create a new alias file instead of modifying the current one.")
@click.option(
    "--keep-comma/--strip-comma",
    default=KEEP_COMMA,
    show_default=True,
    help="Keep commas in stored display names.",
)
@click.option(
    "--header",
    "headers",
    multiple=True,
    default=HEADERS,
    show_default=True,
    help="Address header to read (repeatable).",
)
def build(
    directories: tuple[str, ...],
    alias_file: str,
    max_age: int,
    purge: bool,
    filter_new: bool,
    filter_all: bool,
    backup: bool,
    new: bool,
    keep_comma: bool,
    headers: tuple[str, ...],
) -> None:
    """Build aliases from the messages in DIRECTORIES (e.g. your Sent maildir)."""
    from muttalias.orchestrator.pipelines import run_build

    path = _resolve_alias_file(alias_file)
    options = MergeOptions(
        max_age_days=max_age,
        purge=purge,
        filter_new=filter_new,
        filter_all=filter_all,
        keep_comma_in_display_name=keep_comma,
    )

    click.echo(f"Using {path} to store aliases...")
    started = time.monotonic()
    try:
        result = run_build(
            alias_file=path,
            directories=directories,
            options=options,
            backup=backup,
            new=new,
            header_names=headers,
            on_progress=click.echo,
        )
    except MuttAliasError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if result.purged:
        click.echo(f"Purged {result.purged} generated alias(es).")
    if result.filtered_new or result.filtered_all:
        click.echo(f"Filtered {result.filtered_new + result.filtered_all} impersonal address(es).")
    if result.outcome == MergeOutcome.NO_OP:
        click.echo("No new addresses found.")
    else:
        click.echo(
            f"Added {result.added} new alias(es) "
            f"({result.messages_scanned} message(s), {result.duplicates} already known, "
            f"{result.too_old} too old)."
        )
    click.echo(f"Database updated in {_format_elapsed(time.monotonic() - started)}.")


# ------------------------------------------------------------------
# muttalias filter / purge
# ------------------------------------------------------------------


@cli.command(name="filter")
@click.argument("alias_file", required=False, default="")
@click.option("--backup", "-b", is_flag=True, help="Back up the current alias file to *.prev.")
def filter_command(alias_file: str, backup: bool) -> None:
    """Drop every alias whose address looks impersonal."""
    from muttalias.orchestrator.pipelines import run_filter

    path = _resolve_alias_file(alias_file or ALIAS_FILE)
    try:
        result = run_filter(alias_file=path, backup=backup)
    except MuttAliasError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Removed {result.filtered_all} line(s) from {path}.")


@cli.command()
@click.argument("alias_file", required=False, default="")
@click.option("--backup", "-b", is_flag=True, help="Back up the current alias file to *.prev.")
def purge(alias_file: str, backup: bool) -> None:
    """Drop every alias previously added by muttalias."""
    from muttalias.orchestrator.pipelines import run_purge

    path = _resolve_alias_file(alias_file or ALIAS_FILE)
    try:
        result = run_purge(alias_file=path, backup=backup)
    except MuttAliasError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Removed {result.purged} line(s) from {path}.")
