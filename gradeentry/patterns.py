"""
Multilingual header vocabulary.

Two tables live here:
- PATTERNS: ordered regex sets per category (identifier / name / grade), used to
  classify a single column label;
- HEADER_ROW_KEYWORDS: plain substrings used to find which grid row is the header row,
  plus HEADER_ROW_WORDS_RE for keywords too short to match inside a name.

Both are plain data so the matching policy can be tested on its own.
"""
from __future__ import annotations
import re
from typing import Dict, List, Optional, Pattern, Tuple

IDENTIFIER = "identifier"
NAME = "name"
GRADE = "grade"

CATEGORIES: Tuple[str, ...] = (IDENTIFIER, NAME, GRADE)


def _compile(*parts: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, re.I) for p in parts)


PATTERNS: Dict[str, Tuple[Pattern[str], ...]] = {
    IDENTIFIER: _compile(
        # latin
        r"id",
        r"student.*id",
        # arabic: number / code / seat number
        r"رقم",
        r"كود",
        r"رقم الجلوس",
        r"طالب.*رقم",
        # cyrillic, cjk, spanish
        r"код",
        r"编号",
        r"número",
    ),
    NAME: _compile(
        r"name",
        r"student",
        r"اسم",
        r"الطالب",
        r"طالب",
        r"اسم.*طالب",
        r"имя",
        r"姓名",
        r"nombre",
    ),
    GRADE: _compile(
        r"grade",
        r"final",
        r"mark",
        r"total",
        r"quiz",
        r"exam",
        r"test",
        r"درجة",
        r"مجموع",
        r"نتيجة",
        r"امتحان",
        r"اختبار",
        r"оценка",
        r"成绩",
        r"calificación",
    ),
}

# header row discovery: literal substrings, arabic layouts first
HEADER_ROW_KEYWORDS: List[str] = [
    "رقم الجلوس", "اسم الطالب", "كود الطالب", "رقم الطالب",
    "اسم", "رقم", "كود", "طالب", "درجة", "امتحان", "نتيجة", "مجموع",
    "اختبار", "المجموع", "النهائي", "الدرجة",
    "student id", "student name",
]
# short keywords count only as whole words: "id" must not hit "Walid", "م" must not hit "محمد"
HEADER_ROW_WORDS_RE = re.compile(r"(?<!\w)(?:id|name|م|ت)(?!\w)", re.I)

ARABIC_LETTER_RE = re.compile(r"[أ-ي]")
NUMERIC_HEADER_RE = re.compile(r"^\d+$")
# label given by some exporters to blank header cells
EMPTY_PLACEHOLDER_MARKER = "__EMPTY"


def matches(category: str, text: str) -> bool:
    if not text:
        return False
    pats = PATTERNS.get(category)
    if pats is None:
        raise KeyError(f"unknown category: {category}")
    low = text.lower()
    return any(p.search(low) for p in pats)


def classify(text: str) -> Optional[str]:
    # categories are tried in a fixed order, first hit wins
    for cat in CATEGORIES:
        if matches(cat, text):
            return cat
    return None


def header_keyword_hits(text: str) -> bool:
    low = text.lower()
    if any(k in low or k in text for k in HEADER_ROW_KEYWORDS):
        return True
    return bool(HEADER_ROW_WORDS_RE.search(text))


def has_arabic_letter(text: str) -> bool:
    return bool(ARABIC_LETTER_RE.search(text or ""))


def looks_like_placeholder_id(text: str) -> bool:
    # purely numeric label, or an exporter's blank-cell placeholder
    t = text or ""
    return bool(NUMERIC_HEADER_RE.match(t)) or EMPTY_PLACEHOLDER_MARKER in t
