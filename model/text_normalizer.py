"""Fold edited text into what the Base-14 reconstruction font can draw.

``normalize`` is total and deterministic: accented Latin and Central-European
letters from a closed table become their unaccented ASCII equivalents, every
other character outside printable ASCII becomes ``?``. The output only holds
printable ASCII, so ``normalize(normalize(s)) == normalize(s)``.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

PLACEHOLDER_CHAR = "?"

# (characters, replacement)
_FOLD_GROUPS = (
    # Western European
    ("àáâãäå", "a"),
    ("èéêë", "e"),
    ("ìíîï", "i"),
    ("òóôõöø", "o"),
    ("ùúûü", "u"),
    ("ýÿ", "y"),
    ("ñ", "n"),
    ("ç", "c"),
    ("ß", "ss"),
    ("æ", "ae"),
    ("œ", "oe"),
    ("ÀÁÂÃÄÅ", "A"),
    ("ÈÉÊË", "E"),
    ("ÌÍÎÏ", "I"),
    ("ÒÓÔÕÖØ", "O"),
    ("ÙÚÛÜ", "U"),
    ("ÝŸ", "Y"),
    ("Ñ", "N"),
    ("Ç", "C"),
    ("Æ", "AE"),
    ("Œ", "OE"),
    # Polish
    ("ą", "a"), ("ć", "c"), ("ę", "e"), ("ł", "l"), ("ń", "n"),
    ("ś", "s"), ("źż", "z"),
    ("Ą", "A"), ("Ć", "C"), ("Ę", "E"), ("Ł", "L"), ("Ń", "N"),
    ("Ś", "S"), ("ŹŻ", "Z"),
    # Czech / Slovak
    ("č", "c"), ("ď", "d"), ("ě", "e"), ("ĺľ", "l"), ("ň", "n"),
    ("ŕř", "r"), ("š", "s"), ("ť", "t"), ("ů", "u"), ("ž", "z"),
    ("Č", "C"), ("Ď", "D"), ("Ě", "E"), ("ĹĽ", "L"), ("Ň", "N"),
    ("ŔŘ", "R"), ("Š", "S"), ("Ť", "T"), ("Ů", "U"), ("Ž", "Z"),
    # Hungarian / Romanian / Croatian
    ("ő", "o"), ("ű", "u"), ("ă", "a"), ("șş", "s"), ("țţ", "t"), ("đ", "d"),
    ("Ő", "O"), ("Ű", "U"), ("Ă", "A"), ("ȘŞ", "S"), ("ȚŢ", "T"), ("Đ", "D"),
)

FOLD_MAP: dict[str, str] = {
    ch: replacement for chars, replacement in _FOLD_GROUPS for ch in chars
}


def is_printable_ascii(ch: str) -> bool:
    return " " <= ch <= "~"


def normalize(text: str) -> str:
    """Return ``text`` reduced to printable ASCII, one substitution per character."""
    if not text:
        return ""
    if not isinstance(text, str):
        text = str(text)
    out = []
    replaced = 0
    for ch in text:
        if is_printable_ascii(ch):
            out.append(ch)
            continue
        folded = FOLD_MAP.get(ch)
        if folded is not None:
            out.append(folded)
            continue
        out.append(PLACEHOLDER_CHAR)
        replaced += 1
    if replaced:
        logger.debug(f"normalize: {replaced} unsupported character(s) replaced with {PLACEHOLDER_CHAR!r}")
    return "".join(out)
