"""
Command line entry: recognize (and translate) text in an image file.

Examples:
  snaplingo --file capture.png
  snaplingo --file capture.png --target en
  snaplingo --file capture.png --no-translate --ocr-backend paddle
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from snaplingo.exceptions import SnapLingoError
from snaplingo.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recognize and translate text in a captured image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--file", "-f", required=True, help="Input image path")
    parser.add_argument("--target", "-t", help="Target language code (default: TARGET_LANGUAGE or ja)")
    parser.add_argument("--no-translate", action="store_true", help="Only run OCR")
    parser.add_argument("--ocr-backend", choices=["rapid", "paddle", "auto"], help="Local OCR backend")
    parser.add_argument("--log-level", default="INFO", help="DEBUG/INFO/WARNING/ERROR")
    return parser


async def _run(args: argparse.Namespace) -> int:
    from snaplingo.config import Settings
    from snaplingo.services.capture_service import CaptureService
    from snaplingo.utils.image_utils import decode_image_bytes

    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1

    overrides = {}
    if args.ocr_backend:
        overrides["LOCAL_OCR_BACKEND"] = args.ocr_backend
    service = CaptureService(settings=Settings(**overrides))

    image = decode_image_bytes(path.read_bytes())

    if args.no_translate:
        result = await service.recognize(image)
        print(f"[{result.detected_language or '?'}] ({result.source}/{result.variant})")
        print(result.stripped_text)
        return 0

    outcome = await service.process(image, target_language=args.target)
    if outcome.recognition_error:
        print(f"Recognition failed: {outcome.recognition_error}", file=sys.stderr)
        return 1

    print(f"--- Source [{outcome.detected_language or '?'}] ---")
    print(outcome.recognized_text)
    print(f"--- Translation [{outcome.detected_source_language or '?'}] ---")
    if outcome.translation_error:
        print(outcome.translation_error)
        return 2
    print(outcome.translated_text or "")
    return 0


def main() -> None:
    load_dotenv()
    args = build_parser().parse_args()
    setup_logging(log_level=args.log_level)
    try:
        sys.exit(asyncio.run(_run(args)))
    except SnapLingoError as e:
        logging.getLogger(__name__).error(f"{type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
