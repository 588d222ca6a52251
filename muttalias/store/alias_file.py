"""The mutt alias file: load, line format, purge, backup, atomic publish.

Lines are kept as opaque strings. Only lines written by this tool are ever
interpreted (for purge); everything else passes through verbatim.
"""

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from muttalias.errors import AliasStoreError
from muttalias.parsing.addresses import EMAIL_RE
from muttalias.schemas.alias import AliasEntry, Provenance

logger = logging.getLogger(__name__)

PROVENANCE_MARKER = "mutt-alias: e-mail sent on"
BACKUP_SUFFIX = ".prev"

_BRACKETED_RE = re.compile(r"<([^<>\s]+)>")
_COMMA_RE = re.compile(r"\s*,\s*")


def is_tool_generated(line: str) -> bool:
    """True if ``line`` was written by this tool (structural marker match)."""
    return line.startswith("alias ") and f" # {PROVENANCE_MARKER}" in line


def provenance_of(line: str) -> Provenance:
    if is_tool_generated(line):
        return Provenance.TOOL_GENERATED
    return Provenance.PRE_EXISTING


def addresses_in_line(line: str) -> set[str]:
    """Lowercased addresses referenced by a store line.

    Bracketed addresses count on any line; bare addresses only on ``alias``
    lines, so comments mentioning an address don't block it.
    """
    found = {m.group(1).lower() for m in _BRACKETED_RE.finditer(line)}
    if line.lstrip().startswith("alias "):
        found.update(m.group(0).lower() for m in EMAIL_RE.finditer(line))
    return found


def escape_display_name(name: str, *, keep_comma: bool = True) -> str:
    """Apply the comma policy and escape backslashes and double quotes."""
    if not keep_comma:
        name = _COMMA_RE.sub(" ", name).strip()
    return name.replace("\\", "\\\\").replace('"', '\\"')


def format_entry(entry: AliasEntry, *, keep_comma: bool = True) -> str:
    """Render an AliasEntry as one alias-file line."""
    name = escape_display_name(entry.display_name, keep_comma=keep_comma)
    target = f'"{name}" <{entry.email}>' if name else f"<{entry.email}>"
    return f"alias {entry.alias} {target} # {PROVENANCE_MARKER} {entry.sent.text}"


class AliasFile:
    """In-memory copy of an alias file with an atomic write-back.

    Usage::

        store = AliasFile.load("~/.mutt/aliases")
        store.purge()
        store.extend(["alias jane <jane@example.com>"])
        store.publish()
    """

    def __init__(self, path: str | Path, lines: list[str] | None = None) -> None:
        self._path = Path(path)
        self._lines: list[str] = list(lines or [])
        self._original: list[str] = list(self._lines)

    @classmethod
    def load(cls, path: str | Path, *, create: bool = False) -> "AliasFile":
        """Read the alias file at ``path``.

        A missing file is an error unless ``create`` is set, in which case
        the store starts empty and the file appears at publish time.
        """
        path = Path(path)
        if not path.exists():
            if not create:
                raise AliasStoreError(f"No alias file found at {path}")
            logger.info("Alias file %s does not exist, starting empty", path)
            return cls(path)
        if not path.is_file():
            raise AliasStoreError(f"Alias file is not a regular file: {path}")

        try:
            text = path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError as exc:
            raise AliasStoreError(f"Cannot read alias file {path}: {exc}") from exc

        lines = text.splitlines()
        logger.info("Loaded %d line(s) from %s", len(lines), path)
        return cls(path, lines)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def changed(self) -> bool:
        return self._lines != self._original

    def __len__(self) -> int:
        return len(self._lines)

    def seen_addresses(self) -> set[str]:
        """Every address already present in the store, lowercased."""
        seen: set[str] = set()
        for line in self._lines:
            seen.update(addresses_in_line(line))
        return seen

    def purge(self) -> int:
        """Drop every tool-generated line. Returns how many were dropped."""
        kept = [
            line for line in self._lines if provenance_of(line) != Provenance.TOOL_GENERATED
        ]
        removed = len(self._lines) - len(kept)
        self._lines = kept
        if removed:
            logger.info("Purged %d generated alias(es)", removed)
        return removed

    def extend(self, lines: list[str]) -> None:
        self._lines.extend(lines)

    def replace_lines(self, lines: list[str]) -> None:
        self._lines = list(lines)

    def render(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"

    def publish(self) -> None:
        """Atomic write: temp file in the same directory + rename.

        The original file is untouched unless the rename succeeds.
        """
        content = self.render().encode("utf-8", errors="surrogateescape")
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(directory), prefix=f".{self._path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise AliasStoreError(f"Cannot write to {directory}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            if self._path.exists():
                shutil.copymode(str(self._path), tmp_path)
            os.replace(tmp_path, str(self._path))
        except BaseException as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            if isinstance(exc, OSError):
                raise AliasStoreError(f"Cannot write alias file {self._path}: {exc}") from exc
            raise

        self._original = list(self._lines)
        logger.info("Wrote %d line(s) to %s", len(self._lines), self._path)


def backup_path(path: str | Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + BACKUP_SUFFIX)


def prepare_store(path: str | Path, *, backup: bool = False, new: bool = False) -> AliasFile:
    """Back up the alias file if asked and load the content to merge into.

    - ``backup`` + ``new``: move the current file to ``<path>.prev``, start empty.
    - ``backup`` only: copy the current file to ``<path>.prev``.
    - ``new`` only: start empty; the old file is replaced at publish time.
    """
    path = Path(path).expanduser()
    exists = path.is_file()

    if backup and exists:
        dest = backup_path(path)
        try:
            if new:
                shutil.move(str(path), str(dest))
            else:
                shutil.copy2(str(path), str(dest))
        except OSError as exc:
            raise AliasStoreError(f"Cannot back up {path} to {dest}: {exc}") from exc
        logger.info("Backed up %s to %s", path, dest)

    if new:
        return AliasFile(path)
    return AliasFile.load(path)
