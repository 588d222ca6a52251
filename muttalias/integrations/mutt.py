"""Find the alias file configured for mutt.

Asks ``mutt -Q alias_file`` when mutt is installed, otherwise looks for a
``set alias_file = ...`` line in ``~/.muttrc``.
"""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

MUTTRC_PATH = Path("~/.muttrc")

_SET_ALIAS_FILE_RE = re.compile(r"^\s*set\s+alias_file\s*=\s*(.+?)\s*$", re.MULTILINE)
_QUERY_RE = re.compile(r"^\s*alias_file\s*=\s*(.+?)\s*$", re.MULTILINE)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def expand_path(value: str) -> Path:
    """Expand ``~`` and environment variables in a configured path."""
    return Path(os.path.expanduser(os.path.expandvars(_unquote(value))))


def query_mutt(timeout: float = 10.0) -> str | None:
    """Return the raw ``alias_file`` value reported by ``mutt -Q``, if any."""
    if shutil.which("mutt") is None:
        return None
    try:
        result = subprocess.run(
            ["mutt", "-Q", "alias_file"],
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
        logger.debug("mutt -Q alias_file failed: %s", exc)
        return None

    match = _QUERY_RE.search(result.stdout)
    return match.group(1) if match else None


def read_muttrc(muttrc: str | Path = MUTTRC_PATH) -> str | None:
    """Return the raw ``alias_file`` value set in a muttrc, if any."""
    path = Path(muttrc).expanduser()
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None

    matches = _SET_ALIAS_FILE_RE.findall(text)
    # Last assignment wins, as in mutt itself.
    return matches[-1] if matches else None


def resolve_alias_file(muttrc: str | Path = MUTTRC_PATH) -> Path | None:
    """Locate mutt's alias file, or None if mutt is not configured for one."""
    raw = query_mutt() or read_muttrc(muttrc)
    if not raw:
        return None
    path = expand_path(raw)
    logger.debug("Resolved alias file from mutt configuration: %s", path)
    return path
