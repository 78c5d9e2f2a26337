# marks_linker/vocabulary.py
"""
Header vocabularies for gradesheet structure detection.

Every term is declared in its display spelling and stored normalized, so a
header cell is always compared as normalize(cell) against normalize(term):
hamza, teh marbuta and OCR letter folding apply to both sides alike.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Pattern, Tuple

from .models import MarkCategory
from .tools.arabic_text import normalize

# Substring matching is only trusted for terms at least this long (normalized)
MIN_CONTAINS_LEN = 3


def _norm_all(terms: Iterable[str]) -> Tuple[str, ...]:
    # normalize and de-duplicate, keeping declaration order
    return tuple(dict.fromkeys(t for t in (normalize(x) for x in terms) if t))


ID_HEADERS = _norm_all([
    "رقم التلميذ", "رقم", "ر.ت", "ر.م", "الرقم", "المسلسل", "رقم الطالب",
    "الرقم الترتيبي", "ت", "id", "الرقم التسلسلي",
])

NAME_HEADERS = _norm_all([
    "الاسم الكامل", "اسم التلميذ", "الاسم", "إسم التلميذ", "اسم الطالب",
    "التلميذ", "الطالب", "اسم المتعلم", "المتعلم",
    "nom et prénom", "nom", "prénom", "nom complet", "eleve", "élève", "nom de l'élève",
])

# the other half of a name split over two columns
NAME_PART_HEADERS = _norm_all([
    "النسب", "اللقب", "الاسم العائلي", "اسم العائلة", "الاسم الشخصي", "nom de famille",
])

_ORDINALS = {
    MarkCategory.FARD1: ("1", "١", "الأول", "اول"),
    MarkCategory.FARD2: ("2", "٢", "الثاني", "ثاني"),
    MarkCategory.FARD3: ("3", "٣", "الثالث", "ثالث"),
    MarkCategory.FARD4: ("4", "٤", "الرابع", "رابع"),
}

TEST_WORDS = _norm_all(["فرض", "امتحان", "اختبار", "تقويم"])

_ACTIVITIES_TERMS = [
    "الأنشطة", "النشاط", "أنشطة", "المهارات", "الأداء", "نشاط", "تطبيقات",
    "مراقبة مستمرة", "المراقبة المستمرة",
]


def _fard_terms(category: MarkCategory) -> Tuple[str, ...]:
    digit, arabic_digit, ordinal, _ = _ORDINALS[category]
    terms = [
        f"الفرض {digit}", f"الفرض {ordinal}", f"فرض {digit}", f"فرض {ordinal}", f"فرض{arabic_digit}",
        f"اختبار {digit}", f"امتحان {digit}", f"تقويم {digit}",
    ]
    return _norm_all(terms)


MARK_HEADERS: Dict[MarkCategory, Tuple[str, ...]] = {
    MarkCategory.FARD1: _fard_terms(MarkCategory.FARD1),
    MarkCategory.FARD2: _fard_terms(MarkCategory.FARD2),
    MarkCategory.FARD3: _fard_terms(MarkCategory.FARD3),
    MarkCategory.FARD4: _fard_terms(MarkCategory.FARD4),
    MarkCategory.ACTIVITIES: _norm_all(_ACTIVITIES_TERMS),
}

# Confidence vocabularies: a canonical phrase scores 0.9, the core keyword alone 0.7
CANONICAL_PHRASES: Dict[MarkCategory, Tuple[str, ...]] = {
    cat: _norm_all(
        [f"{word} {o}" for word in ("فرض", "اختبار", "امتحان", "تقويم") for o in _ORDINALS[cat][::2]]
        + [f"فرض{_ORDINALS[cat][1]}"]
    )
    for cat in _ORDINALS
}
CANONICAL_PHRASES[MarkCategory.ACTIVITIES] = _norm_all(["أنشطة", "نشاط", "مراقبة مستمرة"])

_ACTIVITIES_CORE = _norm_all(["أداء", "مهارات", "تطبيقات"])

CANONICAL_CONFIDENCE = 0.9
KEYWORD_CONFIDENCE = 0.7

# Massar exports carry these somewhere in their first rows
MASSAR_INDICATORS = _norm_all(["رقم التلميذ", "إسم التلميذ", "الفرض", "النقطة", "مسار", "القسم"])

# Sub-header under a test header that holds the actual score column in Massar
SCORE_SUBHEADER = normalize("النقطة")


# ------------------------------------------------------------------------------
# Matching helpers (arguments are normalized header text)
# ------------------------------------------------------------------------------

def exact_match(text: str, terms: Tuple[str, ...]) -> bool:
    return bool(text) and text in terms


def contains_match(text: str, terms: Tuple[str, ...]) -> bool:
    if not text:
        return False
    return any(len(t) >= MIN_CONTAINS_LEN and t in text for t in terms)


def token_match(text: str, terms: Tuple[str, ...]) -> bool:
    """A term occurs in `text` as a run of whole tokens ("الطالب" does not hit "الطالبي")."""
    if not text:
        return False
    padded = f" {text} "
    return any(f" {t} " in padded for t in terms)


def _without_article(token: str) -> str:
    return token[2:] if token.startswith("ال") and len(token) > 4 else token


def is_vocabulary_hit(text: str) -> bool:
    """True if a header cell names an identifier, a student name, or a mark category."""
    if not text:
        return False
    groups = [ID_HEADERS, NAME_HEADERS] + list(MARK_HEADERS.values())
    if any(token_match(text, g) for g in groups):
        return True
    words = {_without_article(t) for t in text.split(" ")}
    return any(w in words for w in TEST_WORDS)


def _number_pattern(digit: str) -> Pattern[str]:
    words = "|".join(re.escape(w) for w in TEST_WORDS)
    n = rf"(?<!\d){digit}(?!\d)"
    return re.compile(rf"(?:{words}).*{n}|{n}.*(?:{words})")


# "اختبار رقم 2", "2 فرض": keyword and test number in either order
NUMBERED_TEST_PATTERNS: Dict[MarkCategory, Pattern[str]] = {
    cat: _number_pattern(_ORDINALS[cat][0]) for cat in _ORDINALS
}


def numbered_test_category(text: str) -> Optional[MarkCategory]:
    for cat, pattern in NUMBERED_TEST_PATTERNS.items():
        if text and pattern.search(text):
            return cat
    return None


def mark_confidence(category: MarkCategory, text: str) -> float:
    """0.9 for a canonical phrase, 0.7 for the core keyword alone, else 0."""
    if not text:
        return 0.0
    if any(p in text for p in CANONICAL_PHRASES[category]):
        return CANONICAL_CONFIDENCE
    if category is MarkCategory.ACTIVITIES:
        return KEYWORD_CONFIDENCE if any(k in text for k in _ACTIVITIES_CORE) else 0.0
    if any(w in text for w in TEST_WORDS) and NUMBERED_TEST_PATTERNS[category].search(text):
        return KEYWORD_CONFIDENCE
    return 0.0


def is_test_header(text: str) -> bool:
    """Generic test/exam wording, used to collect additional mark columns."""
    return bool(text) and any(w in text for w in TEST_WORDS)
