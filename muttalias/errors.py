"""Exception hierarchy for fatal, run-level failures.

Per-message problems (bad dates, undecodable names, addresses without an
email) never raise; they are logged and skipped where they occur.
"""


class MuttAliasError(Exception):
    """Base class for errors that abort a run."""


class ConfigError(MuttAliasError):
    """No usable configuration (e.g. no alias file could be determined)."""


class AliasStoreError(MuttAliasError):
    """The alias file is missing, unreadable, or unwritable."""


class MailStoreError(MuttAliasError):
    """A source mail directory is missing or unreadable."""
