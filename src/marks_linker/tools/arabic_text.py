#!/usr/bin/env python3
"""
arabic_text.py
--------------
Canonical form for Arabic names and header labels.

normalize() runs a fixed sequence of rule tables. Each table is plain data
(pattern -> canonical) so the rules can be read and tested on their own:

  1. NFKC + lower-case (presentation forms and ligatures become base letters)
  2. FORMAT_RULES      bidi / zero-width / format controls removed
  3. SPACE_RULES       every Unicode space variant -> " "
  4. DIACRITIC_RULES   harakat, Quranic marks and tatweel removed
  5. LETTER_VARIANTS   hamza-bearing alef, teh marbuta, alef maqsura, ...
  6. OCR_CONFUSABLES   letter pairs scanners routinely swap, folded to one
  7. DIGIT_TABLE       Arabic-Indic and Extended Arabic-Indic digits -> ASCII
  8. PUNCTUATION_RULES punctuation, brackets, pipes -> " "
  9. whitespace collapse

The output only holds lower-case word characters separated by single spaces,
which is what makes normalize() idempotent.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, List, Optional, Pattern, Tuple

Rule = Tuple[Pattern[str], str]


def _rules(*pairs: Tuple[str, str]) -> Tuple[Rule, ...]:
    return tuple((re.compile(p), r) for p, r in pairs)


# ------------------------------------------------------------------------------
# Rule tables (applied in this order)
# ------------------------------------------------------------------------------

FORMAT_RULES: Tuple[Rule, ...] = _rules(
    # BOM, zero-width, LRM/RLM, ALM, bidi embeddings/isolates, soft hyphen
    (r"[\u200B-\u200F\u202A-\u202E\u2060-\u2069\uFEFF\u061C\u00AD]", ""),
)

SPACE_RULES: Tuple[Rule, ...] = _rules(
    (r"[\u00A0\u1680\u2000-\u200A\u2028\u2029\u202F\u205F\u3000\t\r\n\f\v]", " "),
)

DIACRITIC_RULES: Tuple[Rule, ...] = _rules(
    (r"[\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06DC\u06DF-\u06E8\u06EA-\u06ED]", ""),
    (r"\u0640", ""),  # tatweel
)

LETTER_VARIANTS: Tuple[Rule, ...] = _rules(
    (r"[\u0623\u0625\u0622\u0671]", "\u0627"),  # alef with hamza/madda/wasla -> alef
    (r"\u0629", "\u0647"),                      # teh marbuta -> heh
    (r"\u0649", "\u064A"),                      # alef maqsura -> yeh
    (r"\u0624", "\u0648"),                      # waw with hamza -> waw
    (r"\u0626", "\u064A"),                      # yeh with hamza -> yeh
    (r"[\u06CC\u06CE\u06D0]", "\u064A"),        # Persian / Kurdish yeh
    (r"[\u06A9\u06AA]", "\u0643"),              # keheh, swash kaf
    (r"[\u06C0\u06C1\u06D5]", "\u0647"),        # heh goal, heh with yeh, ae
)

OCR_CONFUSABLES: Tuple[Rule, ...] = _rules(
    (r"\u0632", "\u0631"),  # zain -> reh
    (r"\u0630", "\u062F"),  # thal -> dal
    (r"\u0636", "\u0635"),  # dad -> sad
    (r"\u0638", "\u0637"),  # zah -> tah
    (r"\u063A", "\u0639"),  # ghain -> ain
    (r"\u0642", "\u0641"),  # qaf -> feh
)

DIGIT_TABLE = str.maketrans(
    "\u0660\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669"
    "\u06F0\u06F1\u06F2\u06F3\u06F4\u06F5\u06F6\u06F7\u06F8\u06F9",
    "01234567890123456789",
)

PUNCTUATION_RULES: Tuple[Rule, ...] = _rules(
    (r"[^\w\s]", " "),  # includes pipes and the Arabic comma, semicolon, question mark
    (r"_", " "),
)

_WS = re.compile(r"\s+")

# Coarser grouping for phonetic signatures, applied on top of normalize().
# qaf already folds to feh in OCR_CONFUSABLES, so it joins the kaf group here.
PHONETIC_GROUPS: Tuple[Rule, ...] = _rules(
    (r"[\u0633\u0635\u062B\u0634]", "\u0633"),  # seen, sad, theh, sheen
    (r"[\u062A\u0637]", "\u062A"),              # teh, tah
    (r"[\u062D\u062E]", "\u062D"),              # hah, khah
    (r"[\u0643\u0641]", "\u0643"),              # kaf, feh
)

_ARABIC_LETTER = re.compile(r"[\u0621-\u064A\u066E-\u06D3\u06FA-\u06FF]")
_ARABIC_ANY = re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]")

_ARABIC_DECIMAL_SEP = "\u066B"
_ARABIC_THOUSANDS_SEP = "\u066C"


def _apply(text: str, rules: Tuple[Rule, ...]) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


# ------------------------------------------------------------------------------
# Public helpers
# ------------------------------------------------------------------------------

def normalize(text: Any) -> str:
    """
    Return the canonical comparison form of `text`.

    None, empty strings and whitespace-only input give "". Non-string cells
    (numbers) are stringified first. Never raises.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        if isinstance(text, float) and text.is_integer():
            text = str(int(text))
        else:
            text = str(text)
    if not text:
        return ""

    s = unicodedata.normalize("NFKC", text)
    s = unicodedata.normalize("NFKC", s.lower())
    s = _apply(s, FORMAT_RULES)
    s = _apply(s, SPACE_RULES)
    s = _apply(s, DIACRITIC_RULES)
    s = _apply(s, LETTER_VARIANTS)
    s = _apply(s, OCR_CONFUSABLES)
    s = s.translate(DIGIT_TABLE)
    s = _apply(s, PUNCTUATION_RULES)
    return _WS.sub(" ", s).strip()


def tokens(text: str) -> List[str]:
    """Whitespace tokens of an already-normalized string."""
    return [t for t in text.split(" ") if t]


def phonetic_signature(text: str) -> str:
    """normalize() the text, then fold sound-alike letter groups."""
    return _apply(normalize(text), PHONETIC_GROUPS)


def has_arabic(value: Any) -> bool:
    return isinstance(value, str) and bool(_ARABIC_ANY.search(value))


def arabic_letter_count(value: Any) -> int:
    if not isinstance(value, str):
        return 0
    return len(_ARABIC_LETTER.findall(value))


def cell_text(value: Any) -> str:
    """Display text of a grid cell ("" for empty)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


_NUMBER = re.compile(r"^[+-]?(\d+([.,]\d*)?|[.,]\d+)$")


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a grid cell or record value as a number.

    Accepts ints/floats, and strings with Arabic-Indic digits or a comma
    decimal separator ("12,5" -> 12.5). Booleans, NaN and anything else
    give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if number != number else number
    if not isinstance(value, str):
        return None
    s = _apply(value, FORMAT_RULES).strip().translate(DIGIT_TABLE)
    s = s.replace(_ARABIC_DECIMAL_SEP, ".").replace(_ARABIC_THOUSANDS_SEP, "")
    if not s or not _NUMBER.match(s):
        return None
    return float(s.replace(",", "."))
