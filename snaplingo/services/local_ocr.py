"""
Local OCR backends used by the cascade's offline fallback stage.

Each backend turns a BGR bitmap into ordered line observations and reports which
language hints it can honour, so the cascade can filter hints before a call.
"""

from __future__ import annotations

import contextlib
import inspect
import io
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from snaplingo.models.recognition import LineObservation

logger = logging.getLogger(__name__)


def _box_top_left(box: Any) -> Tuple[float, float]:
    pts = np.asarray(box, dtype=np.float32).reshape(-1, 2)
    return float(pts[:, 1].min()), float(pts[:, 0].min())


def order_lines(items: List[Tuple[Any, str]]) -> List[LineObservation]:
    """Sort (box, text) pairs into reading order and wrap them as observations."""
    items = [(box, text) for box, text in items if text is not None]
    items.sort(key=lambda it: _box_top_left(it[0]))
    return [LineObservation(candidates=(str(text),)) for _, text in items]


# -----------------------------
# OCR Backends
# -----------------------------
class LocalOCRBackend:
    def name(self) -> str:
        raise NotImplementedError

    def supported_languages(self) -> Tuple[str, ...]:
        raise NotImplementedError

    def recognize(
        self,
        bgr: np.ndarray,
        language_hints: Sequence[str] = (),
        use_correction: bool = True,
    ) -> List[LineObservation]:
        raise NotImplementedError


class RapidOCRBackend(LocalOCRBackend):
    """
    rapidocr-onnxruntime with its bundled Chinese/English models.
    Language hints and correction have no effect on this engine.
    """
    def __init__(self) -> None:
        try:
            from rapidocr_onnxruntime import RapidOCR  # type: ignore
        except Exception as e:
            raise RuntimeError("rapidocr-onnxruntime not installed. pip install rapidocr-onnxruntime") from e
        self._ocr = RapidOCR()

    def name(self) -> str:
        return "rapid"

    def supported_languages(self) -> Tuple[str, ...]:
        return ("zh-Hans", "en")

    def recognize(
        self,
        bgr: np.ndarray,
        language_hints: Sequence[str] = (),
        use_correction: bool = True,
    ) -> List[LineObservation]:
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        res, _ = self._ocr(rgb)
        if not res:
            return []
        items: List[Tuple[Any, str]] = []
        for item in res:
            if len(item) < 2:
                continue
            items.append((item[0], "" if item[1] is None else str(item[1])))
        return order_lines(items)


# Locale code -> PaddleOCR `lang` model name.
PADDLE_LANGS: Dict[str, str] = {
    "ja": "japan",
    "zh-Hant": "chinese_cht",
    "zh-Hans": "ch",
    "en": "en",
    "ko": "korean",
    "fr": "fr",
    "de": "german",
    "es": "es",
    "it": "it",
    "pt": "pt",
    "ru": "ru",
}


class PaddleOCRBackend(LocalOCRBackend):
    """
    PaddleOCR with one lazily built reader per model language. A single
    supported hint selects its model; no hints or several hints use the
    Chinese model, which also reads kanji and Latin text.
    """
    def __init__(self, device: Optional[str] = None, default_lang: str = "ch", suppress_logs: bool = True) -> None:
        try:
            from paddleocr import PaddleOCR  # type: ignore
        except Exception as e:
            raise RuntimeError("paddleocr not installed. pip install paddleocr") from e
        self._paddle_cls = PaddleOCR
        self._device = device
        self._default_lang = default_lang
        self._suppress_logs = suppress_logs
        self._readers: Dict[str, Any] = {}
        self._readers_lock = threading.Lock()

    def name(self) -> str:
        return "paddle"

    def supported_languages(self) -> Tuple[str, ...]:
        return tuple(PADDLE_LANGS)

    def _quiet(self, fn):
        if not self._suppress_logs:
            return fn()
        buf_out, buf_err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(buf_out), contextlib.redirect_stderr(buf_err):
            return fn()

    def _reader(self, lang: str) -> Any:
        with self._readers_lock:
            reader = self._readers.get(lang)
            if reader is None:
                reader = self._build_reader(lang)
                self._readers[lang] = reader
            return reader

    def _build_reader(self, lang: str) -> Any:
        sig = inspect.signature(self._paddle_cls.__init__)
        kwargs: Dict[str, Any] = {}
        for k, v in [
            ("lang", lang),
            ("use_doc_orientation_classify", False),
            ("use_doc_unwarping", False),
            ("use_textline_orientation", False),
            ("use_angle_cls", False),
            ("show_log", False),
            ("device", self._device),
        ]:
            if k in sig.parameters and v is not None:
                kwargs[k] = v

        logger.info(f"Loading PaddleOCR model lang={lang}")
        return self._quiet(lambda: self._paddle_cls(**kwargs))

    def _lang_for(self, language_hints: Sequence[str]) -> str:
        langs = [PADDLE_LANGS[h] for h in language_hints if h in PADDLE_LANGS]
        if len(langs) == 1:
            return langs[0]
        return self._default_lang

    @staticmethod
    def _items_from_v3(obj: Any) -> List[Tuple[Any, str]]:
        res = getattr(obj, "res", None) if not isinstance(obj, dict) else obj.get("res", obj)
        if not isinstance(res, dict):
            return []
        texts = res.get("rec_texts") or []
        polys = res.get("rec_polys")
        if polys is None:
            polys = res.get("dt_polys")
        if polys is None:
            return []
        return [(polys[i], str(t)) for i, t in enumerate(texts) if i < len(polys)]

    @staticmethod
    def _items_from_v2(res: Any) -> List[Tuple[Any, str]]:
        if not res:
            return []
        inner = res[0] if (isinstance(res, list) and len(res) == 1 and isinstance(res[0], list)) else res
        items: List[Tuple[Any, str]] = []
        for item in inner or []:
            if not isinstance(item, (list, tuple)) or len(item) < 2:
                continue
            rec = item[1]
            text = rec[0] if isinstance(rec, (list, tuple)) else rec
            items.append((item[0], str(text)))
        return items

    def recognize(
        self,
        bgr: np.ndarray,
        language_hints: Sequence[str] = (),
        use_correction: bool = True,
    ) -> List[LineObservation]:
        reader = self._reader(self._lang_for(language_hints))
        if hasattr(reader, "predict"):
            out = self._quiet(lambda: reader.predict(bgr))
            items: List[Tuple[Any, str]] = []
            for obj in out or []:
                items.extend(self._items_from_v3(obj))
        else:
            items = self._items_from_v2(self._quiet(lambda: reader.ocr(bgr)))
        return order_lines(items)


def build_local_ocr(backend: str, paddle_device: Optional[str] = None) -> LocalOCRBackend:
    backend = (backend or "auto").lower()
    if backend == "rapid":
        return RapidOCRBackend()
    if backend == "paddle":
        return PaddleOCRBackend(device=paddle_device)
    if backend == "auto":
        try:
            return PaddleOCRBackend(device=paddle_device)
        except RuntimeError as e:
            logger.info(f"PaddleOCR unavailable, using RapidOCR: {e}")
            return RapidOCRBackend()
    raise ValueError(f"Unknown local OCR backend: {backend}")
