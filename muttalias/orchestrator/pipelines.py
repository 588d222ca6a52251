"""Pipeline handlers for building and cleaning alias files.

Each handler runs one complete pass and returns a MergeResult.
The CLI calls these handlers; they never print, only report progress
through the optional callback.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from muttalias.integrations.maildir import iter_messages
from muttalias.parsing.addresses import parse_address_list
from muttalias.parsing.dates import resolve_date
from muttalias.schemas.alias import MergeOptions, MergeOutcome, MergeResult
from muttalias.store.alias_file import prepare_store
from muttalias.store.merge import MergeEngine, line_is_impersonal

logger = logging.getLogger(__name__)


def run_build(
    *,
    alias_file: str | Path,
    directories: Sequence[str | Path],
    options: MergeOptions,
    backup: bool = False,
    new: bool = False,
    header_names: tuple[str, ...] = ("To",),
    now: datetime | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> MergeResult:
    """Scan mail directories and merge their recipients into the alias file.

    Flow:
    1. Back up / load the alias file (purging generated lines if asked).
    2. For every message: resolve the date, split and parse the address list,
       offer each address to the merge engine.
    3. Filter, append, and atomically publish.

    Raises:
        AliasStoreError: The alias file is missing (without ``new``) or unwritable.
        MailStoreError: A source directory is missing or unreadable.
    """

    def _emit(msg: str) -> None:
        if on_progress:
            on_progress(msg)

    now = now or datetime.now(UTC)
    store = prepare_store(alias_file, backup=backup, new=new)
    engine = MergeEngine(options, now=now)
    ctx = engine.begin(store)

    for directory in directories:
        _emit(f"Processing {directory}")
        for headers in iter_messages(
            directory,
            options.max_age_days,
            header_names=header_names,
            now=now.timestamp(),
        ):
            ctx.result.messages_scanned += 1
            if not headers.to:
                continue
            sent = resolve_date(headers.date)
            for address in parse_address_list(headers.to):
                engine.offer(ctx, address, sent)

    result = engine.commit(ctx, store)
    if store.changed or new:
        store.publish()
    else:
        logger.info("Alias file unchanged, not rewriting %s", store.path)
    return result


def run_filter(*, alias_file: str | Path, backup: bool = False) -> MergeResult:
    """Drop every line of the alias file that references an impersonal address."""
    store = prepare_store(alias_file, backup=backup)
    lines = store.lines
    kept = [line for line in lines if not line_is_impersonal(line)]
    store.replace_lines(kept)

    result = MergeResult(filtered_all=len(lines) - len(kept), total_lines=len(kept))
    if store.changed:
        store.publish()
        result.outcome = MergeOutcome.UPDATED
    return result


def run_purge(*, alias_file: str | Path, backup: bool = False) -> MergeResult:
    """Drop every alias line previously generated by this tool."""
    store = prepare_store(alias_file, backup=backup)
    result = MergeResult(purged=store.purge(), total_lines=len(store))
    if store.changed:
        store.publish()
        result.outcome = MergeOutcome.UPDATED
    return result
