"""Address-list splitting and address-spec parsing.

Splits an unfolded To: value on top-level commas, then pulls the email
and raw display name out of each piece. Malformed input degrades to
"skip this address", never to an exception.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from email.utils import unquote

from muttalias.schemas.alias import ParsedAddress

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"[A-Za-z0-9._%+-]+@(?:[A-Za-z0-9-]+\.)+[A-Za-z]{2,}"
EMAIL_RE = re.compile(EMAIL_PATTERN)
_EMAIL_FULL_RE = re.compile(rf"^{EMAIL_PATTERN}$")
_ANGLE_RE = re.compile(r"<([^<>]*)>")
_SURNAME_RE = re.compile(r"^[^\s@,:;<>()\"]+$")


def is_email(value: str) -> bool:
    """Return True if ``value`` is exactly one address token."""
    return bool(_EMAIL_FULL_RE.match(value))


def _is_surname(piece: str) -> bool:
    return _SURNAME_RE.match(piece) is not None


@dataclass
class _ScanState:
    in_quote: bool = False
    angle_depth: int = 0
    paren_depth: int = 0
    escape_next: bool = False

    @property
    def top_level(self) -> bool:
        return not self.in_quote and self.angle_depth == 0 and self.paren_depth == 0


class AddressListSplitter:
    """Restartable sequence of address-specs from one header value.

    Usage::

        for spec in AddressListSplitter('Doe, John <a@b.com>, c@d.com'):
            ...
    """

    def __init__(self, value: str) -> None:
        self._value = value or ""

    def __iter__(self) -> Iterator[str]:
        state = _ScanState()
        current: list[str] = []

        for char in self._value:
            if state.escape_next:
                current.append(char)
                state.escape_next = False
                continue

            if state.in_quote:
                if char == "\\":
                    state.escape_next = True
                elif char == '"':
                    state.in_quote = False
                current.append(char)
                continue

            if char == '"':
                state.in_quote = True
            elif char == "<":
                state.angle_depth += 1
            elif char == ">":
                state.angle_depth = max(0, state.angle_depth - 1)
            elif char == "(":
                state.paren_depth += 1
            elif char == ")":
                state.paren_depth = max(0, state.paren_depth - 1)
            elif char == "," and state.top_level:
                spec = "".join(current).strip()
                if not spec:
                    current = []
                    continue
                # A lone bare word with no address is the "Last" of an
                # unquoted "Last, First <addr>" name; anything else splits.
                if not _is_surname(spec):
                    yield spec
                    current = []
                    continue

            current.append(char)

        spec = "".join(current).strip()
        if spec:
            yield spec


def split_address_list(value: str) -> list[str]:
    """Split an address list into its top-level address-specs."""
    return list(AddressListSplitter(value))


def parse_address_spec(spec: str) -> ParsedAddress | None:
    """Extract (email, raw display name) from one address-spec.

    Returns None when no well-formed email can be found.
    """
    lt = spec.find("<")
    match = _ANGLE_RE.search(spec) if lt != -1 else None

    if match:
        email = match.group(1).strip()
        if not is_email(email):
            logger.debug("Skipping malformed bracketed address: %r", spec)
            return None
        name = spec[:lt].strip()
        if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
            name = unquote(name)
        return ParsedAddress(email=email, display_name=name.strip())

    found = EMAIL_RE.search(spec)
    if found is None:
        logger.debug("No address in spec: %r", spec)
        return None
    return ParsedAddress(email=found.group(0), display_name="")


def parse_address_list(value: str) -> list[ParsedAddress]:
    """Split a header value and parse every address-spec in it, in order."""
    parsed: list[ParsedAddress] = []
    for spec in AddressListSplitter(value):
        address = parse_address_spec(spec)
        if address is not None:
            parsed.append(address)
    return parsed
