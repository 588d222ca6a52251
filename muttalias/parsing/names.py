"""Display-name decoding and alias-token derivation.

Decoding and ASCII folding are both fallback chains: an ordered list of
providers tried in turn, where the last one always succeeds.
"""

import logging
import re
import unicodedata
from collections.abc import Callable
from email.errors import HeaderParseError
from email.header import decode_header

logger = logging.getLogger(__name__)

Provider = Callable[[str], str]

# =?charset?encoding?text?=
ENCODED_WORD_RE = re.compile(r"=\?[^?\s]+\?[bBqQ]\?[^?\s]*\?=")
_BETWEEN_WORDS_RE = re.compile(r"(?<=\?=)[ \t]+(?==\?)")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7e]")
_WHITESPACE_RE = re.compile(r"\s+")
_LAST_FIRST_RE = re.compile(r"^([^,]+),([^,]+)$")
_UNSAFE_RE = re.compile(r"[^a-z0-9-]+")
_HYPHENS_RE = re.compile(r"-{2,}")

# Letters NFKD does not decompose into a base letter + combining mark.
_TRANSLITERATIONS = str.maketrans(
    {
        "ß": "ss",
        "ẞ": "SS",
        "æ": "ae",
        "Æ": "AE",
        "œ": "oe",
        "Œ": "OE",
        "ø": "o",
        "Ø": "O",
        "đ": "d",
        "Đ": "D",
        "ð": "d",
        "Ð": "D",
        "þ": "th",
        "Þ": "TH",
        "ł": "l",
        "Ł": "L",
        "ı": "i",
        "ŋ": "ng",
        "Ŋ": "NG",
    }
)


# ------------------------------------------------------------------
# DisplayNameDecoder
# ------------------------------------------------------------------


def _decode_encoded_word(word: str) -> str:
    """Decode a single encoded-word. Raises on unknown charset or bad payload."""
    parts = decode_header(word)
    decoded = []
    for data, charset in parts:
        if isinstance(data, bytes):
            decoded.append(data.decode(charset or "ascii"))
        else:
            decoded.append(data)
    return "".join(decoded)


def mime_decode(value: str) -> str:
    """Decode every encoded-word run in ``value``, keeping literal text.

    A run that fails to decode is kept verbatim.
    """
    if "=?" not in value:
        return value

    # Whitespace between adjacent encoded-words is not part of the text.
    value = _BETWEEN_WORDS_RE.sub("", value)

    def _replace(match: re.Match) -> str:
        word = match.group(0)
        try:
            return _decode_encoded_word(word)
        except (LookupError, UnicodeDecodeError, HeaderParseError, ValueError) as exc:
            logger.debug("Could not decode %r: %s", word, exc)
            return word

    return ENCODED_WORD_RE.sub(_replace, value)


def strip_non_printable(value: str) -> str:
    """Last-resort provider: drop everything outside printable ASCII."""
    return _NON_PRINTABLE_RE.sub("", value)


DECODERS: list[Provider] = [mime_decode, strip_non_printable]


def _run_chain(providers: list[Provider], value: str) -> str:
    for provider in providers[:-1]:
        try:
            return provider(value)
        except Exception:
            logger.debug("Provider %s failed on %r", provider.__name__, value, exc_info=True)
    return providers[-1](value)


def decode_display_name(raw: str) -> str:
    """Decode MIME encoded-words in a raw display name.

    Total: a name with nothing to decode is returned verbatim. Whitespace is
    left alone; alias derivation collapses it.
    """
    if not raw:
        return ""
    decoded = _run_chain(DECODERS, raw)
    if decoded == raw:
        return raw
    return unicodedata.normalize("NFC", decoded)


# ------------------------------------------------------------------
# ASCII folding
# ------------------------------------------------------------------


def nfkd_fold(value: str) -> str:
    """Transliterate to ASCII: strip accents, map special letters, drop the rest."""
    value = value.translate(_TRANSLITERATIONS)
    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", "ignore").decode("ascii")


FOLDERS: list[Provider] = [nfkd_fold, strip_non_printable]


def ascii_fold(value: str) -> str:
    """Best-effort transliteration of ``value`` to plain ASCII."""
    return _run_chain(FOLDERS, value)


# ------------------------------------------------------------------
# AliasNameBuilder
# ------------------------------------------------------------------


def _sanitize(value: str) -> str:
    value = value.lower().replace(" ", "-")
    value = _UNSAFE_RE.sub("-", value)
    value = _HYPHENS_RE.sub("-", value)
    return value.strip("-")


def reorder_last_first(name: str) -> str:
    """Turn "Last, First" into "First Last"; anything else is returned as is."""
    match = _LAST_FIRST_RE.match(name)
    if not match:
        return name
    last, first = match.group(1).strip(), match.group(2).strip()
    if not last or not first:
        return name
    return f"{first} {last}"


def alias_from_display_name(name: str) -> str:
    """Derive an alias token from a decoded display name (may be empty)."""
    name = _WHITESPACE_RE.sub(" ", name).strip()
    if not name:
        return ""
    name = reorder_last_first(name)
    return _sanitize(ascii_fold(name))


def alias_from_local_part(local_part: str) -> str:
    """Derive an alias token from the local part of an address."""
    return _sanitize(ascii_fold(local_part))


def build_alias(display_name: str, email: str) -> str:
    """Alias token for an address: the display name if usable, else the local part."""
    alias = alias_from_display_name(display_name)
    if alias:
        return alias
    local_part = email.rsplit("@", 1)[0]
    return alias_from_local_part(local_part)
