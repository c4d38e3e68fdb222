"""
Heuristic gate deciding whether recognized text is usable or OCR noise.

Typical OCR garbage has too many punctuation/symbol characters and too little
language signal. The same gate is applied to cloud and local results.
"""

import logging
import unicodedata
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Fixed thresholds: noise iff non-word ratio is high AND language signal is low.
MAX_NON_WORD_RATIO = 0.35
MIN_LANGUAGE_SIGNAL_RATIO = 0.65


@dataclass(frozen=True)
class TextStats:
    total: int = 0
    alphanumeric: int = 0
    punctuation: int = 0
    symbol: int = 0
    cjk: int = 0
    kana: int = 0

    @property
    def non_word_ratio(self) -> float:
        if not self.total:
            return 0.0
        return (self.punctuation + self.symbol) / self.total

    @property
    def language_signal_ratio(self) -> float:
        if not self.total:
            return 0.0
        return (self.alphanumeric + self.cjk + self.kana) / self.total


def text_stats(text: str) -> TextStats:
    """Count character classes over the non-whitespace code points of text."""
    total = alnum = punct = symbol = cjk = kana = 0
    for ch in text or "":
        if ch.isspace():
            continue
        total += 1
        category = unicodedata.category(ch)
        major = category[0]
        # Letters, marks and numbers all carry language signal.
        if major in ("L", "M", "N"):
            alnum += 1
        elif major == "P":
            punct += 1
        elif major == "S":
            symbol += 1
        cp = ord(ch)
        if 0x4E00 <= cp <= 0x9FFF:
            cjk += 1
        if 0x3040 <= cp <= 0x30FF:
            kana += 1
    return TextStats(
        total=total,
        alphanumeric=alnum,
        punctuation=punct,
        symbol=symbol,
        cjk=cjk,
        kana=kana,
    )


def is_likely_noise(text: str) -> bool:
    stats = text_stats(text)
    if stats.total == 0:
        return True
    return (
        stats.non_word_ratio > MAX_NON_WORD_RATIO
        and stats.language_signal_ratio < MIN_LANGUAGE_SIGNAL_RATIO
    )


def is_usable(text: str) -> bool:
    """True when text is non-blank and does not look like symbol soup."""
    trimmed = (text or "").strip()
    if not trimmed:
        return False
    noise = is_likely_noise(trimmed)
    if noise:
        logger.debug(f"Rejected as noise: {trimmed[:40]!r} ({text_stats(trimmed)})")
    return not noise
