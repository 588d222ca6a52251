"""Shared fixtures for muttalias tests."""

from datetime import UTC, datetime

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Ensure tests never read the user's muttalias settings."""
    for key in ("MUTT_ALIAS_FILE", "MUTT_ALIAS_MAX_AGE", "MUTT_ALIAS_KEEP_COMMA", "MUTT_ALIAS_HEADERS"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("MUTT_ALIAS_ENV_FILE", str(tmp_path / "no-such.env"))


@pytest.fixture()
def now():
    """A fixed reference time for age calculations."""
    return datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def write_message():
    """Factory writing a minimal RFC 5322 message file."""

    def _write(path, to, date="Tue, 15 Oct 2024 14:30:00 +0200", extra=b""):
        path.parent.mkdir(parents=True, exist_ok=True)
        headers = [b"From: Me <me@example.org>"]
        if to is not None:
            headers.append(b"To: " + (to.encode("utf-8") if isinstance(to, str) else to))
        if date is not None:
            headers.append(b"Date: " + date.encode("ascii"))
        headers.append(b"Subject: hello")
        path.write_bytes(b"\n".join(headers) + b"\n" + extra + b"\nBody text.\n")
        return path

    return _write
