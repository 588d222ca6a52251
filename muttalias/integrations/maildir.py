"""Read address and date headers from messages stored one per file.

Works on Maildir folders (``cur``/``new``) and on plain directories of
message files (MH-style). Only the header block of each file is parsed.
"""

import logging
import re
import time
from collections.abc import Iterator
from email import policy
from email.parser import HeaderParser
from pathlib import Path
from typing import BinaryIO

from muttalias.errors import MailStoreError
from muttalias.schemas.alias import MessageHeaders

logger = logging.getLogger(__name__)

MAILDIR_SUBDIRS = ("cur", "new")
SECONDS_PER_DAY = 86400

_FOLD_RE = re.compile(r"\r?\n(?=[ \t])")
_NEWLINE_RE = re.compile(r"[\r\n]+")


def _is_maildir(directory: Path) -> bool:
    return any((directory / sub).is_dir() for sub in MAILDIR_SUBDIRS)


def _list_files(directory: Path) -> list[Path]:
    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        raise MailStoreError(f"Cannot read mail directory {directory}: {exc}") from exc
    return [p for p in entries if p.is_file() and not p.name.startswith(".")]


def iter_message_paths(
    directory: str | Path,
    max_age_days: int = 0,
    *,
    now: float | None = None,
) -> Iterator[Path]:
    """Yield message files in ``directory``, optionally only recent ones.

    Args:
        directory: A Maildir folder or a directory holding one message per file.
        max_age_days: Skip files last modified this many days ago or earlier
            (0 = no pre-filter).
        now: Reference time as a POSIX timestamp (defaults to the current time).

    Raises:
        MailStoreError: If the directory does not exist or cannot be listed.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        raise MailStoreError(f"Mail directory does not exist: {directory}")

    if _is_maildir(directory):
        folders = [directory / sub for sub in MAILDIR_SUBDIRS if (directory / sub).is_dir()]
    else:
        folders = [directory]

    cutoff = None
    if max_age_days > 0:
        cutoff = (now if now is not None else time.time()) - max_age_days * SECONDS_PER_DAY

    for folder in folders:
        for path in _list_files(folder):
            if cutoff is not None:
                try:
                    if path.stat().st_mtime <= cutoff:
                        continue
                except OSError:
                    logger.debug("Cannot stat %s, skipping", path)
                    continue
            yield path


def _decode_line(raw: bytes) -> str:
    """Raw header bytes as text: UTF-8 (RFC 6532) first, else Latin-1."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _read_header_block(f: BinaryIO) -> str:
    lines: list[str] = []
    for raw in f:
        if not raw.strip(b"\r\n"):
            break
        lines.append(_decode_line(raw))
    return "".join(lines)


def _clean_header(value: str | None) -> str:
    """Unfold a header value onto one line."""
    if value is None:
        return ""
    text = _FOLD_RE.sub("", str(value))
    return _NEWLINE_RE.sub(" ", text).strip()


def read_headers(path: str | Path, header_names: tuple[str, ...] = ("To",)) -> MessageHeaders:
    """Parse the header block of one message file.

    Values of several address headers (e.g. To and Cc) are joined with
    ", " so they can be split as one address list. Unencoded 8-bit header
    text is read as UTF-8, falling back to Latin-1 line by line.

    Raises:
        OSError: If the file cannot be read.
    """
    path = Path(path)
    with path.open("rb") as f:
        message = HeaderParser(policy=policy.compat32).parsestr(_read_header_block(f))

    values: list[str] = []
    for name in header_names:
        for value in message.get_all(name, []):
            cleaned = _clean_header(value)
            if cleaned:
                values.append(cleaned)

    return MessageHeaders(
        path=str(path),
        to=", ".join(values),
        date=_clean_header(message.get("Date")),
    )


def iter_messages(
    directory: str | Path,
    max_age_days: int = 0,
    *,
    header_names: tuple[str, ...] = ("To",),
    now: float | None = None,
) -> Iterator[MessageHeaders]:
    """Yield the headers of every readable message in ``directory``.

    Messages that cannot be read are logged and skipped.
    """
    for path in iter_message_paths(directory, max_age_days, now=now):
        try:
            yield read_headers(path, header_names)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping unreadable message %s: %s", path, exc)
