"""Single source of truth for configuration defaults.

All modules read settings from here, not from os.environ directly.

Values come from the process environment, layered over an optional dotenv
file at $MUTT_ALIAS_ENV_FILE (default ~/.config/muttalias/muttalias.env).
"""

import os
from pathlib import Path

from dotenv import dotenv_values

DEFAULT_ENV_FILE = Path("~/.config/muttalias/muttalias.env")


def _load(env_file: str | Path | None = None) -> dict[str, str | None]:
    """Merge the dotenv file (if present) with the environment; env wins."""
    path = Path(env_file or os.environ.get("MUTT_ALIAS_ENV_FILE") or DEFAULT_ENV_FILE).expanduser()
    values: dict[str, str | None] = {}
    if path.is_file():
        values.update(dotenv_values(path))
    values.update({k: v for k, v in os.environ.items() if k.startswith("MUTT_ALIAS_")})
    return values


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


_settings = _load()

# Empty means: ask mutt (see muttalias.integrations.mutt).
ALIAS_FILE: str = _settings.get("MUTT_ALIAS_FILE") or ""
MAX_AGE_DAYS: int = int(_settings.get("MUTT_ALIAS_MAX_AGE") or "0")
KEEP_COMMA: bool = _as_bool(_settings.get("MUTT_ALIAS_KEEP_COMMA"), True)
HEADERS: tuple[str, ...] = tuple(
    h.strip() for h in (_settings.get("MUTT_ALIAS_HEADERS") or "To").split(",") if h.strip()
)
