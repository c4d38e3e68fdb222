"""
Script detection by Unicode range membership.

CJK ideographs are shared by Japanese and Chinese, so kana (or the iteration
mark 々) is what marks text as Japanese. Ideographs without kana are Chinese.
"""

import re
from typing import Optional

# -----------------------------
# Regex / constants
# -----------------------------
KANA_RE = re.compile(r"[\u3040-\u30ff]")  # Hiragana + Katakana
CJK_RE = re.compile(r"[\u4e00-\u9fff]")   # CJK Unified Ideographs
JAPANESE_RE = re.compile(r"[\u3040-\u30ff\u3005]")  # kana or 々
ASCII_LETTER_RE = re.compile(r"[A-Za-z]")

JAPANESE = "japanese"
CHINESE = "chinese"


def contains_kana(text: str) -> bool:
    return KANA_RE.search(text or "") is not None


def contains_cjk(text: str) -> bool:
    return CJK_RE.search(text or "") is not None


def contains_japanese(text: str) -> bool:
    return JAPANESE_RE.search(text or "") is not None


def contains_chinese(text: str) -> bool:
    return contains_cjk(text) and not contains_kana(text)


def contains_ascii_letter(text: str) -> bool:
    return ASCII_LETTER_RE.search(text or "") is not None


def matches_script(text: str, script: str) -> bool:
    """True when text belongs to the named script (JAPANESE or CHINESE)."""
    if script == JAPANESE:
        return contains_japanese(text)
    if script == CHINESE:
        return contains_chinese(text)
    raise ValueError(f"Unknown script: {script}")


def guess_language(text: str) -> Optional[str]:
    """
    Best-effort language code for recognized text.

    Checked in priority order: Japanese -> "ja", Chinese -> "zh",
    any ASCII letter -> "en". Returns None when nothing matches.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    if contains_japanese(trimmed):
        return "ja"
    if contains_chinese(trimmed):
        return "zh"
    if contains_ascii_letter(trimmed):
        return "en"
    return None
