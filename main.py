# =============================================================================
# main.py
# Entry point -- run this file to extract objects from a video.
#
# Usage:
#   python main.py VIDEO [--pdf report.pdf] [--pptx slides.pptx] [--json report.json] [options]
#
# Dependencies:
#   pip install opencv-python Pillow numpy ultralytics reportlab python-pptx
# =============================================================================

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path

from analysis import process_video_file
from constants import VID_EXTS
from errors import BusyError, ModelLoadError
from history import HistoryStore
from json_export import export_json
from models import DetectionSettings, EnhancementLevel, ModelType
from pdf_report import generate_pdf_report, format_time
from pptx_export import generate_pptx

logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Detect, enhance and deduplicate the objects seen in a video.")
    p.add_argument("video", help="Path to the video file")
    p.add_argument("--settings", help="JSON settings file (camelCase or snake_case keys)")
    p.add_argument("--confidence", type=float, help="Confidence threshold (0-1)")
    p.add_argument("--max-detections", type=int, help="Max detections per frame")
    p.add_argument("--enhancement", choices=[e.value for e in EnhancementLevel],
                   help="Crop enhancement level")
    p.add_argument("--model", choices=[m.value for m in ModelType],
                   help="Detector configuration")
    p.add_argument("--padding", type=int, help="Minimum crop margin in pixels")
    p.add_argument("--frame-skip", type=int,
                   help="Run the detector on every Nth sampled frame, track in between")
    p.add_argument("--interval", type=float, help="Override the sampling interval (s)")
    p.add_argument("--pdf", help="Write a PDF report here")
    p.add_argument("--pptx", help="Write a PowerPoint presentation here")
    p.add_argument("--json", help="Write a JSON export here")
    p.add_argument("--history", help="Append the result to this history file")
    p.add_argument("--user", default="local", help="History key / report author")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def load_settings(args: argparse.Namespace) -> DetectionSettings:
    data: dict = {}
    if args.settings:
        with open(args.settings, "r", encoding="utf-8") as f:
            data.update(json.load(f))
    overrides = {
        "confidence_threshold": args.confidence,
        "max_detections":       args.max_detections,
        "image_enhancement":    args.enhancement,
        "model_type":           args.model,
        "bounding_box_padding": args.padding,
        "frame_skip":           args.frame_skip,
        "sampling_interval":    args.interval,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return DetectionSettings.from_dict(data)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args)
    except (OSError, ValueError) as e:
        logger.error("Invalid settings: %s", e)
        return 2

    if Path(args.video).suffix.lower() not in VID_EXTS:
        logger.error("Not a supported video file: %s (expected one of %s)",
                     args.video, ", ".join(sorted(VID_EXTS)))
        return 1

    abort = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: abort.set())

    def on_progress(pct: int, status: str):
        logger.info("[%3d%%] %s", pct, status)

    try:
        result = process_video_file(args.video, settings,
                                    progress_cb=on_progress, abort=abort)
    except (ModelLoadError, BusyError, ValueError) as e:
        logger.error("Error: %s", e)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    logger.info("Duration: %s  |  Objects: %d%s", format_time(result.duration),
                result.object_count, "  (partial)" if result.aborted else "")
    for o in result.objects:
        logger.info("   %-16s %5.1f%%  at %s", o.label, o.confidence * 100,
                    format_time(o.frame_time))

    if args.pdf:
        logger.info("PDF report written to %s",
                    generate_pdf_report(args.pdf, result, user=args.user))
    if args.pptx:
        logger.info("Presentation written to %s",
                    generate_pptx(args.pptx, result, user=args.user))
    if args.json:
        logger.info("JSON export written to %s",
                    export_json(result, args.json, settings=settings, user=args.user))
    if args.history:
        HistoryStore(args.history).add(args.user, result)
        logger.info("Added to history at %s", Path(args.history).resolve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
