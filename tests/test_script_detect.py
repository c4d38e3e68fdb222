from __future__ import annotations

import unittest

from snaplingo.services.script_detect import (
    CHINESE,
    JAPANESE,
    contains_ascii_letter,
    contains_chinese,
    contains_japanese,
    contains_kana,
    guess_language,
    matches_script,
)


class TestScriptDetect(unittest.TestCase):
    def test_kana_marks_japanese(self) -> None:
        for text in ("ありがとう", "カタカナ", "漢字とかな", "人々"):
            with self.subTest(text=text):
                self.assertTrue(contains_japanese(text))

    def test_ideographs_without_kana_are_chinese(self) -> None:
        self.assertFalse(contains_japanese("你好"))
        self.assertTrue(contains_chinese("你好"))

    def test_kana_forces_japanese_over_chinese(self) -> None:
        self.assertFalse(contains_chinese("ありがとう"))
        self.assertFalse(contains_chinese("漢字とかな"))

    def test_latin_text_is_neither(self) -> None:
        self.assertFalse(contains_japanese("Hello"))
        self.assertFalse(contains_chinese("Hello"))
        self.assertFalse(contains_kana("Hello"))
        self.assertTrue(contains_ascii_letter("Hello"))
        self.assertFalse(contains_ascii_letter("123 !?"))

    def test_guess_language(self) -> None:
        cases = [
            ("ありがとう", "ja"),
            ("你好", "zh"),
            ("Hello", "en"),
            ("  Hello  ", "en"),
            ("123", None),
            ("", None),
            ("   ", None),
        ]
        for text, expected in cases:
            with self.subTest(text=text):
                self.assertEqual(guess_language(text), expected)

    def test_matches_script(self) -> None:
        self.assertTrue(matches_script("こんにちは", JAPANESE))
        self.assertTrue(matches_script("你好", CHINESE))
        self.assertFalse(matches_script("Hello", CHINESE))
        with self.assertRaises(ValueError):
            matches_script("Hello", "latin")


if __name__ == "__main__":
    unittest.main()
