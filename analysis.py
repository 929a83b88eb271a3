# =============================================================================
# analysis.py
# VideoObjectAnalyzer: drives sampling -> detection -> extraction ->
# enhancement -> deduplication for one video, with progress reporting,
# cancellation, the zero-detection retry pass, and single-run gating.
# =============================================================================

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

import sampling
from ai import MODEL_CACHE, ModelCache, detect_frame, detect_low_threshold, retry_points
from constants import (MIN_TRACK_CONFIDENCE, PROGRESS_INTERVAL, PROGRESS_SAMPLING_CAP,
                       PROGRESS_DEDUPE, THUMB_JPEG_QUALITY)
from dedupe import dedupe
from enhancement import EnhancementRunner
from errors import BusyError, FrameProcessingError, ModelLoadError
from extraction import encode_jpeg, extract
from frames import FrameSource, VideoFileSource
from models import Detection, DetectionSettings, ObjectCrop, RunResult, RunState
from tracking import track

logger = logging.getLogger(__name__)

# Only one run per process: frame sources and the detector are driven serially.
_RUN_LOCK = threading.Lock()


# =============================================================================
# PROGRESS
# =============================================================================

class ProgressReporter:
    """
    Wraps a progress_cb(percent, status) so it is called at most once per
    `interval` seconds with a percentage that never goes down.
    """

    def __init__(self, callback: Optional[Callable[[int, str], None]],
                 interval: float = PROGRESS_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self._cb = callback
        self._interval = interval
        self._clock = clock
        self._last_pct = 0
        self._last_time: Optional[float] = None

    @property
    def percent(self) -> int:
        return self._last_pct

    def report(self, percent: float, status: str = "", force: bool = False):
        pct = max(self._last_pct, int(min(100, max(0, percent))))
        if self._cb is None:
            self._last_pct = pct
            return
        now = self._clock()
        if not force and self._last_time is not None and now - self._last_time < self._interval:
            return
        self._last_pct  = pct
        self._last_time = now
        self._cb(pct, status)


# =============================================================================
# RUN CONTEXT
# =============================================================================

@dataclass
class PipelineRun:
    """Mutable state owned by a single run."""
    settings: DetectionSettings
    detector: object
    abort: threading.Event
    state: RunState = RunState.SAMPLING
    thumbnail: Optional[bytes] = None
    crops: List[ObjectCrop] = field(default_factory=list)
    detection_count: int = 0

    @property
    def aborted(self) -> bool:
        return self.abort.is_set()


# =============================================================================
# ANALYZER
# =============================================================================

class VideoObjectAnalyzer:
    """Extracts the unique objects seen in one video."""

    def __init__(self, settings: Optional[DetectionSettings] = None,
                 model_cache: ModelCache = MODEL_CACHE,
                 enhancer: Optional[Callable] = None,
                 progress_interval: float = PROGRESS_INTERVAL):
        self.settings = settings or DetectionSettings()
        self.model_cache = model_cache
        self._enhancer = enhancer
        self._progress_interval = progress_interval

    def process_video(self, source: FrameSource,
                      progress_cb: Optional[Callable[[int, str], None]] = None,
                      abort: Optional[threading.Event] = None) -> RunResult:
        """
        Run the whole pipeline over `source`.

        Raises BusyError if another run is active and ModelLoadError if the
        detector cannot be loaded. Every other failure degrades to the best
        result obtainable; an aborted run returns what it had so far.
        """
        if not _RUN_LOCK.acquire(blocking=False):
            raise BusyError("A video is already being processed. Please wait.")
        try:
            detector = self.model_cache.get(self.settings.model_type)
            run = PipelineRun(settings=self.settings, detector=detector,
                              abort=abort or threading.Event())
            reporter = ProgressReporter(progress_cb, self._progress_interval)
            if self._enhancer is not None:
                return self._run(run, source, reporter, self._enhancer)
            with EnhancementRunner(timeout=self.settings.enhancement_timeout) as runner:
                return self._run(run, source, reporter, runner)
        finally:
            _RUN_LOCK.release()

    # -- Run stages -----------------------------------------------------------

    def _run(self, run: PipelineRun, source: FrameSource,
             reporter: ProgressReporter, enhancer: Callable) -> RunResult:
        logger.info("Processing %s (%.2fs)", source.name or "video", source.duration)
        try:
            times = sampling.plan(source.duration, run.settings.sampling_interval)
            logger.info("Sampling %d time point(s)", len(times))
            run.state = RunState.DETECTING
            self._sample(run, source, times, reporter, enhancer)

            if not run.aborted and run.detection_count == 0 and run.settings.retry_on_failure:
                run.state = RunState.RETRY_DETECTING
                logger.warning("No objects found, retrying with a lower threshold...")
                self._retry(run, source, enhancer)
        except ModelLoadError:
            run.state = RunState.FAILED
            raise
        except Exception as e:
            logger.error("Processing failed: %s", e)
            run.state = RunState.FAILED

        logger.info("%d detection(s) before filtering", len(run.crops))
        if run.state is not RunState.FAILED:
            run.state = RunState.DEDUPLICATING
        reporter.report(PROGRESS_DEDUPE, "Filtering duplicates...")
        objects = dedupe(run.crops)
        logger.info("%d unique object(s) after filtering", len(objects))

        if run.aborted:
            run.state = RunState.ABORTED
            reporter.report(reporter.percent, "Aborted", force=True)
        elif run.state is RunState.FAILED:
            reporter.report(reporter.percent, "Failed", force=True)
        else:
            run.state = RunState.DONE
            reporter.report(100, "Done", force=True)

        return RunResult(file_name=source.name, duration=source.duration,
                         thumbnail=run.thumbnail, objects=objects,
                         aborted=run.aborted, state=run.state)

    def _sample(self, run: PipelineRun, source: FrameSource, times: List[float],
                reporter: ProgressReporter, enhancer: Callable):
        skip  = run.settings.frame_skip
        total = len(times)
        prev_frame: Optional[np.ndarray] = None
        prev_dets: List[Detection] = []

        for i, t in enumerate(times):
            if run.aborted:
                logger.info("Run aborted at %.2fs", t)
                return
            reporter.report(min(PROGRESS_SAMPLING_CAP, round((i + 1) / total * 100)),
                            f"Frame {i + 1}/{total} ({t:.1f}s)")
            try:
                frame = self._read_frame(source, t)
            except FrameProcessingError as e:
                logger.warning("%s", e)
                prev_frame, prev_dets = None, []
                continue

            if i == 0:
                run.thumbnail = encode_jpeg(frame, THUMB_JPEG_QUALITY)

            if prev_frame is None or i % skip == 0:
                dets = detect_frame(run.detector, frame, t, run.settings)
                run.detection_count += len(dets)
                if dets:
                    logger.info("Found %d object(s) at %.2fs", len(dets), t)
            else:
                dets = self._track_forward(prev_frame, frame, prev_dets, t)

            self._collect(run, frame, dets, enhancer)
            prev_frame, prev_dets = frame, dets

    def _retry(self, run: PipelineRun, source: FrameSource, enhancer: Callable):
        found = 0
        for t in retry_points(source.duration):
            if run.aborted:
                return
            try:
                frame = self._read_frame(source, t)
            except FrameProcessingError as e:
                logger.warning("%s", e)
                continue
            dets = detect_low_threshold(run.detector, frame, t)
            found += len(dets)
            self._collect(run, frame, dets, enhancer)
        run.detection_count += found
        if found:
            logger.info("Found %d object(s) on retry", found)
        else:
            logger.warning("No objects found on retry either")

    # -- Helpers --------------------------------------------------------------

    @staticmethod
    def _read_frame(source: FrameSource, t: float) -> np.ndarray:
        try:
            source.seek(t)
            return source.current_bitmap()
        except Exception as e:
            raise FrameProcessingError(t, str(e)) from e

    @staticmethod
    def _track_forward(prev_frame: np.ndarray, frame: np.ndarray,
                       prev_dets: List[Detection], t: float) -> List[Detection]:
        h, w = frame.shape[:2]
        tracked = []
        for d in prev_dets:
            try:
                r = track(prev_frame, frame, d.bbox, w, h)
            except Exception as e:
                logger.warning("Tracking %s failed at %.2fs: %s", d.label, t, e)
                continue
            if r.confidence >= MIN_TRACK_CONFIDENCE:
                tracked.append(Detection(d.label, d.score * r.confidence, r.bbox, t))
        return tracked

    def _collect(self, run: PipelineRun, frame: np.ndarray,
                 dets: List[Detection], enhancer: Callable):
        for det in dets:
            try:
                crop = extract(frame, det, level=run.settings.image_enhancement,
                               enhancer=enhancer,
                               min_margin=run.settings.bounding_box_padding)
            except Exception as e:
                logger.warning("Could not extract %s at %.2fs: %s",
                               det.label, det.frame_time, e)
                continue
            run.crops.append(crop)


def process_video_file(path: str, settings: Optional[DetectionSettings] = None,
                       progress_cb: Optional[Callable[[int, str], None]] = None,
                       abort: Optional[threading.Event] = None,
                       model_cache: ModelCache = MODEL_CACHE) -> RunResult:
    """Open `path` with OpenCV and run the analyzer over it."""
    with VideoFileSource(path) as source:
        return VideoObjectAnalyzer(settings, model_cache=model_cache).process_video(
            source, progress_cb=progress_cb, abort=abort)
