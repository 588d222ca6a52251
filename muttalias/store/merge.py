"""Merge newly discovered addresses into an alias file.

Flow for one run:
  load -> purge -> discover (dedup + age) -> filter new -> commit -> filter all

All run state lives in a MergeContext; the engine itself holds only the
options and the reference time.
"""

import logging
import re
from datetime import UTC, datetime

from muttalias.parsing.addresses import EMAIL_RE, is_email
from muttalias.parsing.dates import within_max_age
from muttalias.parsing.names import build_alias, decode_display_name
from muttalias.schemas.alias import (
    AliasEntry,
    MergeOptions,
    MergeOutcome,
    MergeResult,
    ParsedAddress,
    ResolvedDate,
)
from muttalias.store.alias_file import AliasFile, format_entry

logger = logging.getLogger(__name__)

IMPERSONAL_RE = re.compile(
    r"^[a-z0-9._%+-]*"
    r"(?:"
    r"[0-9]{9,}"
    r"|(?:[0-9]+[a-z]+){3,}"
    r"|\+"
    r"|nicht-?antworten"
    r"|ne-?pas-?r[eé]pondre"
    r"|not?[-_.]?reply"
    r"|\b(?:un)?subscribe\b"
    r"|\bmailer-daemon\b"
    r")"
    r"[a-z0-9._%+-]*@(?:[a-z0-9-]+\.)+[a-z]{2,}$",
    re.IGNORECASE,
)


def is_impersonal(email: str) -> bool:
    """Heuristic: does this address look machine-generated?"""
    return bool(IMPERSONAL_RE.match(email.strip()))


def line_is_impersonal(line: str) -> bool:
    """True if any address on a store line looks machine-generated."""
    return any(is_impersonal(m.group(0)) for m in EMAIL_RE.finditer(line))


class MergeContext:
    """Per-run state: the seen-set and the pending new entries."""

    def __init__(self, seen: set[str] | None = None) -> None:
        self.seen: set[str] = set(seen or ())
        self.pending: list[AliasEntry] = []
        self.result = MergeResult()


class MergeEngine:
    """Decides which addresses become new alias entries.

    Usage::

        engine = MergeEngine(options)
        ctx = engine.begin(store)
        engine.offer(ctx, parsed_address, resolved_date)
        engine.commit(ctx, store)
    """

    def __init__(self, options: MergeOptions, *, now: datetime | None = None) -> None:
        self._options = options
        self._now = now or datetime.now(UTC)

    @property
    def options(self) -> MergeOptions:
        return self._options

    @property
    def now(self) -> datetime:
        return self._now

    def begin(self, store: AliasFile) -> MergeContext:
        """Purge if requested, then seed the seen-set from what remains."""
        purged = store.purge() if self._options.purge else 0
        ctx = MergeContext(store.seen_addresses())
        ctx.result.purged = purged
        logger.debug("Seen-set seeded with %d address(es)", len(ctx.seen))
        return ctx

    def offer(self, ctx: MergeContext, address: ParsedAddress, sent: ResolvedDate) -> bool:
        """Record ``address`` as a new entry if it is new and recent enough.

        Returns True when an entry was added to the pending buffer.
        """
        ctx.result.candidates += 1
        email = address.email.strip().lower()
        if not is_email(email):
            logger.debug("Skipping invalid address %r", address.email)
            return False

        if email in ctx.seen:
            ctx.result.duplicates += 1
            return False

        if not within_max_age(sent, self._now, self._options.max_age_days):
            ctx.result.too_old += 1
            return False

        display_name = decode_display_name(address.display_name)
        try:
            entry = AliasEntry(
                alias=build_alias(display_name, email),
                display_name=display_name,
                email=email,
                sent=sent,
            )
        except ValueError:
            logger.warning("Could not derive an alias for %s, skipping", email)
            return False

        ctx.seen.add(email)
        ctx.pending.append(entry)
        logger.debug("New alias %s for %s", entry.alias, email)
        return True

    def commit(self, ctx: MergeContext, store: AliasFile) -> MergeResult:
        """Filter, append the pending entries, then filter the whole store."""
        result = ctx.result
        pending = ctx.pending

        if self._options.filter_new:
            kept = [entry for entry in pending if not is_impersonal(entry.email)]
            result.filtered_new = len(pending) - len(kept)
            pending = kept

        keep_comma = self._options.keep_comma_in_display_name
        store.extend([format_entry(entry, keep_comma=keep_comma) for entry in pending])
        result.added = len(pending)

        if self._options.filter_all:
            lines = store.lines
            kept_lines = [line for line in lines if not line_is_impersonal(line)]
            result.filtered_all = len(lines) - len(kept_lines)
            store.replace_lines(kept_lines)
            result.added -= sum(
                1 for entry in pending if is_impersonal(entry.email)
            )

        result.total_lines = len(store)
        updated = result.candidates or store.changed
        result.outcome = MergeOutcome.UPDATED if updated else MergeOutcome.NO_OP
        logger.info(
            "Merge: %d candidate(s), %d added, %d duplicate(s), %d too old",
            result.candidates,
            result.added,
            result.duplicates,
            result.too_old,
        )
        return result
