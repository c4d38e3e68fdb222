from __future__ import annotations

import asyncio
import unittest

import numpy as np

from snaplingo.exceptions import InvalidRequest, RecognitionFailed, RemoteAPIError, TransportError
from snaplingo.models.recognition import CloudOCRText, LineObservation, PipelineConfig
from snaplingo.services.ocr_cascade import OCRCascade, rank_candidates, select_candidate
from snaplingo.services.script_detect import CHINESE, JAPANESE
from ocr_stubs import StubCloud, StubLocalOCR, sample_image

NO_KEY = PipelineConfig(api_key="")
WITH_KEY = PipelineConfig(api_key="test-key")


class TestLocalPasses(unittest.TestCase):
    def test_mixed_pass_returns_when_priority_passes_reject(self) -> None:
        local = StubLocalOCR({
            "auto": "@@##",
            "ja": "hello",
            "zh-Hant": "hello",
            "zh-Hans": "hello",
            "en": "",
            "mixed": "Hello world",
        })

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "Hello world")
        self.assertEqual(result.detected_language, "en")
        self.assertEqual(result.source, "local")
        self.assertEqual(result.variant, "identity")
        self.assertEqual(local.pass_keys, ["auto", "ja", "zh-Hant", "zh-Hans", "en", "mixed"])
        self.assertEqual([call[2] for call in local.calls], [True, False, False, False, True, True])

    def test_auto_pass_accepts_usable_text(self) -> None:
        local = StubLocalOCR({"auto": "こんにちは"})

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "こんにちは")
        self.assertEqual(result.detected_language, "ja")
        self.assertEqual(local.pass_keys, ["auto"])

    def test_japanese_pass_labels_ja(self) -> None:
        local = StubLocalOCR({"auto": "", "ja": "こんにちは"})

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.detected_language, "ja")
        self.assertEqual(local.pass_keys, ["auto", "ja"])

    def test_chinese_passes_label_region(self) -> None:
        traditional = StubLocalOCR({"ja": "hello", "zh-Hant": "你好"})
        result = OCRCascade(NO_KEY, traditional).recognize(sample_image())
        self.assertEqual(result.detected_language, "zh-TW")

        simplified = StubLocalOCR({"ja": "hello", "zh-Hant": "hello", "zh-Hans": "你好"})
        result = OCRCascade(NO_KEY, simplified).recognize(sample_image())
        self.assertEqual(result.detected_language, "zh-CN")

    def test_english_pass_accepts_any_non_blank_text(self) -> None:
        local = StubLocalOCR({"en": "OK"})

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "OK")
        self.assertEqual(result.detected_language, "en")
        self.assertNotIn("mixed", local.pass_keys)

    def test_script_priority_selects_matching_candidate(self) -> None:
        local = StubLocalOCR({
            "ja": [
                LineObservation(candidates=("Konnichiwa", "こんにちは")),
                LineObservation(candidates=("世界",)),
            ],
        })

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "こんにちは\n世界")
        self.assertEqual(result.detected_language, "ja")

    def test_hints_are_filtered_to_supported_languages(self) -> None:
        local = StubLocalOCR(supported=("en",))

        OCRCascade(NO_KEY, local).recognize(sample_image())

        hints = [call[1] for call in local.calls[:6]]
        # ja / zh-Hant / zh-Hans drop to no hints; the mixed pass keeps only "en"
        self.assertEqual(hints, [(), (), (), (), ("en",), ("en",)])

    def test_candidate_ranking(self) -> None:
        self.assertEqual(select_candidate(["abc", "漢字かな"], JAPANESE), "漢字かな")
        self.assertEqual(select_candidate(["abc", "中文"], CHINESE), "中文")
        self.assertEqual(select_candidate(["abc", "def"], JAPANESE), "abc")
        self.assertEqual(select_candidate(["abc", "こんにちは"]), "abc")
        self.assertIsNone(select_candidate([], JAPANESE))
        self.assertEqual(rank_candidates(["a", "か", "b", "き"], JAPANESE), ["か", "き", "a", "b"])


class TestCloudStage(unittest.TestCase):
    def test_cloud_result_short_circuits_local_stage(self) -> None:
        cloud = StubCloud([CloudOCRText(text="Good morning", locale="en")])
        local = StubLocalOCR({"auto": "ignored"})

        result = OCRCascade(WITH_KEY, local, cloud_client=cloud).recognize(sample_image())

        self.assertEqual(result.text, "Good morning")
        self.assertEqual(result.detected_language, "en")
        self.assertEqual(result.source, "cloud")
        self.assertEqual(local.calls, [])

    def test_cloud_retry_uses_scaled_enhanced_image(self) -> None:
        cloud = StubCloud([
            CloudOCRText(text="!!!", locale=None),
            CloudOCRText(text="Menu", locale="en"),
        ])
        local = StubLocalOCR()

        result = OCRCascade(WITH_KEY, local, cloud_client=cloud).recognize(sample_image())

        self.assertEqual(result.text, "Menu")
        self.assertEqual(result.variant, "scaled+enhanced")
        self.assertEqual(cloud.shapes, [(10, 20, 3), (20, 40, 3)])
        self.assertEqual(local.calls, [])

    def test_cloud_errors_fall_through_to_local(self) -> None:
        cloud = StubCloud([TransportError("timeout"), RemoteAPIError("quota", code=429)])
        local = StubLocalOCR({"auto": "Hello"})

        result = OCRCascade(WITH_KEY, local, cloud_client=cloud).recognize(sample_image())

        self.assertEqual(result.text, "Hello")
        self.assertEqual(result.source, "local")
        self.assertEqual(len(cloud.shapes), 2)

    def test_cloud_is_skipped_without_api_key(self) -> None:
        cloud = StubCloud([CloudOCRText(text="never", locale="en")])
        local = StubLocalOCR({"auto": "Hello"})

        OCRCascade(NO_KEY, local, cloud_client=cloud).recognize(sample_image())

        self.assertEqual(cloud.shapes, [])

    def test_unusable_cloud_text_is_kept_when_local_fails(self) -> None:
        cloud = StubCloud([
            CloudOCRText(text="???", locale=None),
            CloudOCRText(text="...", locale=None),
        ])
        local = StubLocalOCR({"auto": RuntimeError("no model")})

        result = OCRCascade(WITH_KEY, local, cloud_client=cloud).recognize(sample_image())

        self.assertEqual(result.text, "...")
        self.assertEqual(result.source, "cloud")


class TestVariantFallback(unittest.TestCase):
    def test_unusable_variant_advances_to_next(self) -> None:
        local = StubLocalOCR({"auto": lambda bgr: "Hello" if bgr.shape[0] == 20 else ""})

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "Hello")
        self.assertEqual(result.variant, "scaled")

    def test_variant_error_advances_to_next(self) -> None:
        def auto(bgr):
            if bgr.shape[0] == 10:
                raise RuntimeError("engine crashed")
            return "Hello"

        result = OCRCascade(NO_KEY, StubLocalOCR({"auto": auto})).recognize(sample_image())

        self.assertEqual(result.text, "Hello")
        self.assertEqual(result.variant, "scaled")

    def test_all_noise_returns_last_variant_result(self) -> None:
        local = StubLocalOCR({"mixed": "%%%"})

        result = OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertEqual(result.text, "%%%")
        self.assertEqual(result.variant, "inverted(enhanced)")
        self.assertEqual(local.pass_keys.count("mixed"), 6)

    def test_all_local_errors_raise_recognition_failed(self) -> None:
        local = StubLocalOCR({"auto": RuntimeError("no model")})

        with self.assertRaises(RecognitionFailed) as ctx:
            OCRCascade(NO_KEY, local).recognize(sample_image())

        self.assertIn("no model", str(ctx.exception))
        self.assertEqual(ctx.exception.code, 422)

    def test_invalid_image_is_rejected(self) -> None:
        with self.assertRaises(InvalidRequest):
            OCRCascade(NO_KEY, StubLocalOCR()).recognize(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_recognize_async_runs_in_worker_thread(self) -> None:
        local = StubLocalOCR({"auto": "Hello"})

        result = asyncio.run(OCRCascade(NO_KEY, local).recognize_async(sample_image()))

        self.assertEqual(result.text, "Hello")


if __name__ == "__main__":
    unittest.main()
