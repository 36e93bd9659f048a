"""
Capture Engine
==============

Drives a capture session: searches for a source, samples it on a fixed
period, classifies each sample and keeps one frame per distinct visual state.

Per-tick Pipeline:
    source → probe → current_frame → compute_crop → reduce_frame
           → SimilarityPipeline → (DISTINCT) encode crop + retain

Concurrency Model:
    - Single event loop. Session state is mutated only on the loop thread,
      by tick handlers and command handlers
    - CPU work (reduction, hashing, encoding) runs in a worker thread via
      asyncio.to_thread; it only reads a snapshot of the baseline
    - At most one tick is in flight; an overlapping tick is dropped
    - stop/reset bump a generation counter, so an in-flight result that
      completes afterwards is discarded instead of applied
    - Search and tick timers are independent tasks; stop cancels both

Example:
    engine = CaptureEngine(locator=StaticLocator(source), sink=MemorySink())
    await engine.start()
    ...
    await engine.stop()
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple, Union

import numpy as np

from slide_capture.capture.observers import CaptureObserver, ObserverGroup
from slide_capture.capture.sinks import FrameSink
from slide_capture.capture.transitions import (
    CapturePolicy,
    CaptureTimings,
    TickAction,
    TransitionResult,
    is_usable,
    probe_source,
)
from slide_capture.dedup.pipeline import SimilarityPipeline, SimilarityThresholds
from slide_capture.errors import ConfigurationError, LengthMismatchError, SourceUnavailableError
from slide_capture.geometry.crop import compute_crop
from slide_capture.imaging.perceptual_hash import MATRIX_SIZE
from slide_capture.imaging.raster import DEFAULT_THUMBNAIL_SIZE, Thumbnail, reduce_frame
from slide_capture.imaging.signatures import bits_to_hex
from slide_capture.models.geometry import CropRegion, Rect
from slide_capture.models.input import ControlCommand
from slide_capture.models.output import SessionStatus
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import (
    Baseline,
    CaptureSession,
    CaptureStatus,
    RetainedFrame,
)
from slide_capture.models.verdict import Classification
from slide_capture.observability.metrics import CaptureMetrics
from slide_capture.stream.frame import Frame
from slide_capture.stream.image_codec import IMAGE_FORMATS, encode_image, media_type_for
from slide_capture.stream.source import FrameSource, SourceLocator


logger = logging.getLogger(__name__)


ProcessResult = Tuple[Thumbnail, Classification, Optional[bytes]]


class CaptureEngine:
    """
    Capture state machine with injected collaborators.

    Nothing here is process-global: every engine owns its session, timers
    and metrics, so several engines can run side by side.

    Attributes:
        session: Current capture session
        metrics: Engine counters
        crop: Configured crop region
        last_archive: Path returned by the sink on the last finalization
    """

    def __init__(
        self,
        locator: SourceLocator,
        sink: Optional[FrameSink] = None,
        crop: Optional[CropRegion] = None,
        thresholds: Optional[SimilarityThresholds] = None,
        timings: Optional[CaptureTimings] = None,
        thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE,
        image_format: str = "webp",
        quality: int = 80,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        observers: Iterable[CaptureObserver] = (),
        pipeline: Optional[SimilarityPipeline] = None,
        timers: bool = True,
        log_every_n_ticks: int = 30,
    ) -> None:
        """
        Initialize the engine.

        Args:
            locator: Supplies (and replaces) the frame source
            sink: Receives retained frames when the session stops
            crop: Region of the source to sample (defaults to the whole source)
            thresholds: Similarity thresholds for the default pipeline
            timings: Timer periods and search timeout
            thumbnail_size: Edge length of comparison thumbnails (>= 32)
            image_format: Encoding of retained frames (webp, png, jpeg)
            quality: Encoder quality for webp/jpeg (1..100)
            clock: Monotonic clock (seconds)
            wall_clock: Wall clock for retained frame timestamps
            observers: Hook receivers
            pipeline: Custom similarity pipeline (overrides thresholds)
            timers: Run search/tick timers as tasks. Disable to drive
                search_tick()/tick() manually.
            log_every_n_ticks: Periodic summary interval

        Raises:
            ConfigurationError: On invalid sizes, formats or quality
        """
        if thumbnail_size < MATRIX_SIZE:
            raise ConfigurationError(
                f"thumbnail_size must be >= {MATRIX_SIZE}, got {thumbnail_size}"
            )
        if image_format.lower() not in IMAGE_FORMATS:
            raise ConfigurationError(f"Unsupported image format: {image_format}")
        if not 1 <= quality <= 100:
            raise ConfigurationError(f"quality must be in [1, 100], got {quality}")

        self.locator = locator
        self.sink = sink
        self.crop = crop or CropRegion.full()
        self.timings = timings or CaptureTimings()
        self.thumbnail_size = thumbnail_size
        self.image_format = image_format.lower()
        self.quality = quality
        self.media_type = media_type_for(self.image_format)
        self.log_every_n_ticks = max(1, log_every_n_ticks)

        self._clock = clock
        self._wall_clock = wall_clock
        self._timers = timers

        self.pipeline = pipeline or SimilarityPipeline(thresholds=thresholds)
        self.policy = CapturePolicy(self.timings)
        self.metrics = CaptureMetrics()
        self.observers = ObserverGroup(observers)

        self.session = CaptureSession()
        self.last_archive: Optional[Path] = None

        self._source: Optional[FrameSource] = None
        self._crop_rect: Optional[Rect] = None
        self._source_size: Optional[Tuple[int, int]] = None

        self._generation = 0
        self._in_flight = False
        self._search_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

        logger.info(
            f"CaptureEngine initialized: crop={self.crop.direction.value} "
            f"{self.crop.width_fraction:.2f}x{self.crop.height_fraction:.2f}, "
            f"thumbnail={thumbnail_size}px, format={self.image_format}@{quality}"
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> CaptureStatus:
        return self.session.status

    @property
    def retained_frames(self) -> Tuple[RetainedFrame, ...]:
        return self.session.frames

    @property
    def source(self) -> Optional[FrameSource]:
        return self._source

    @property
    def crop_rect(self) -> Optional[Rect]:
        return self._crop_rect

    @property
    def source_size(self) -> Optional[Tuple[int, int]]:
        return self._source_size

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def snapshot(self) -> SessionStatus:
        """Current session status."""
        reason = self.session.status_reason
        return SessionStatus(
            session_id=self.session.session_id,
            status=self.session.status,
            reason_code=reason.value if reason is not None else None,
            retained_count=len(self.session.retained_frames),
            ticks_processed=self.session.ticks_processed,
            crop=self._crop_rect.to_dict() if self._crop_rect else None,
            source_size=self._source_size,
            finalized=self.session.finalized,
        )

    # ------------------------------------------------------------------
    # Control commands
    # ------------------------------------------------------------------

    async def handle_command(self, command: Union[ControlCommand, str]) -> SessionStatus:
        """
        Dispatch a control command.

        Raises:
            ValueError: If the command is unknown
        """
        command = ControlCommand(command)
        if command == ControlCommand.START:
            await self.start()
        elif command == ControlCommand.STOP:
            await self.stop()
        elif command == ControlCommand.RESET:
            await self.reset()
        elif command == ControlCommand.ACKNOWLEDGE:
            await self.acknowledge()
        return self.snapshot()

    async def start(self) -> None:
        """
        Start capturing.

        From IDLE or STOPPED a fresh session is created. From TIMED_OUT the
        search resumes with the session preserved. Otherwise a no-op.
        """
        status = self.session.status
        if status in (CaptureStatus.SEARCHING, CaptureStatus.CAPTURING):
            logger.info(f"Start ignored: session already {status.value}")
            return

        if status in (CaptureStatus.IDLE, CaptureStatus.STOPPED):
            self._generation += 1
            self.session = CaptureSession()
            self._drop_source()
            logger.info(f"New capture session {self.session.session_id}")

        self._begin_search(ReasonCode.OPERATOR_START)

    async def stop(self) -> None:
        """Stop capturing and hand the retained frames to the sink."""
        if self.session.status in (CaptureStatus.IDLE, CaptureStatus.STOPPED):
            logger.info(f"Stop ignored: session is {self.session.status.value}")
            return
        await self._enter_stopped(ReasonCode.OPERATOR_STOP)

    async def reset(self) -> None:
        """Clear retained frames and the baseline, then search again."""
        self._generation += 1
        self._cancel_timers()
        self._drop_source()
        cleared = len(self.session.retained_frames)
        self.session.clear()
        logger.info(f"Session {self.session.session_id} reset ({cleared} frame(s) discarded)")
        self._begin_search(ReasonCode.OPERATOR_RESET)

    async def acknowledge(self) -> None:
        """Acknowledge a search timeout and search again."""
        if self.session.status != CaptureStatus.TIMED_OUT:
            logger.info(f"Acknowledge ignored: session is {self.session.status.value}")
            return
        self._begin_search(ReasonCode.OPERATOR_ACKNOWLEDGE)

    def set_crop(self, crop: CropRegion) -> None:
        """Change the crop region. Takes effect on the next tick."""
        self.crop = crop
        self._source_size = None
        self._crop_rect = None
        if self._source is not None and is_usable(self._source):
            self._acquire(self._source)
        logger.info(
            f"Crop changed: {crop.direction.value} "
            f"{crop.width_fraction:.2f}x{crop.height_fraction:.2f}"
        )

    async def close(self) -> None:
        """Cancel timers and wait for them to finish."""
        self._generation += 1
        tasks = [t for t in (self._search_task, self._tick_task) if t is not None]
        self._cancel_timers()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    async def search_tick(self) -> TransitionResult:
        """
        Run one search poll.

        Returns:
            TransitionResult of the poll
        """
        if self.session.status != CaptureStatus.SEARCHING:
            return TransitionResult(self.session.status, ReasonCode.SEARCHING, False)

        self.metrics.search_polls += 1
        try:
            source = self._locate()
            usable = is_usable(source)
        except Exception as e:
            # Counts as "nothing found" so the search timeout still applies
            self.metrics.search_errors += 1
            logger.error(f"Source search failed: {e}", exc_info=True)
            source, usable = None, False

        result = self.policy.evaluate_search(self.session, usable, self._clock())

        if result.new_status == CaptureStatus.CAPTURING:
            self._acquire(source)
            self._set_status(CaptureStatus.CAPTURING, result.reason_code)
            self._cancel_timers()
            self._start_tick_timer()
        elif result.new_status == CaptureStatus.TIMED_OUT:
            self.metrics.search_timeouts += 1
            self._set_status(CaptureStatus.TIMED_OUT, result.reason_code)
            self._cancel_timers()
            logger.warning(
                f"No usable source after {self.timings.search_timeout_sec:.0f}s, "
                f"waiting for operator acknowledgment"
            )
        else:
            logger.debug("No usable source yet")

        return result

    # ------------------------------------------------------------------
    # Capturing
    # ------------------------------------------------------------------

    async def tick(self) -> Optional[Classification]:
        """
        Run one sampling tick.

        Returns:
            Classification of the sampled frame, or None if the tick was
            skipped, dropped or failed
        """
        if self.session.status != CaptureStatus.CAPTURING:
            return None

        self.metrics.ticks_total += 1

        if self._in_flight:
            self.metrics.ticks_skipped_overlap += 1
            logger.debug("Previous tick still in flight, dropping tick")
            return None

        self._in_flight = True
        started = self._clock()
        try:
            return await self._run_tick()
        except LengthMismatchError:
            self.metrics.tick_errors += 1
            logger.exception("Hash length mismatch, stopping session")
            await self._enter_stopped(ReasonCode.INTERNAL_ERROR)
            return None
        except Exception as e:
            self.metrics.tick_errors += 1
            logger.error(f"Tick failed: {e}", exc_info=True)
            return None
        finally:
            self._in_flight = False
            self.metrics.last_tick_ms = (self._clock() - started) * 1000

    async def _run_tick(self) -> Optional[Classification]:
        if self._source is None:
            source = self._locate()
            if not is_usable(source):
                self.metrics.ticks_skipped_source += 1
                logger.info("Source lost, searching again")
                self._begin_search(ReasonCode.SOURCE_LOST)
                return None
            logger.info("Source re-acquired")
            self._acquire(source)

        decision = self.policy.evaluate_tick(probe_source(self._source))

        if decision.action == TickAction.REACQUIRE:
            self.metrics.ticks_skipped_source += 1
            logger.info("Source unavailable, will re-acquire next tick")
            self._lose_source()
            return None

        if decision.action == TickAction.SKIP:
            self.metrics.ticks_skipped_buffering += 1
            logger.debug("Source buffering, skipping tick")
            return None

        if decision.action == TickAction.STOP:
            logger.info("Source paused or ended")
            await self._enter_stopped(decision.reason_code)
            return None

        generation = self._generation
        previous_crop = self._crop_rect
        try:
            frame = self._source.current_frame()
            crop = self._crop_for(frame.width, frame.height)
        except SourceUnavailableError as e:
            self.metrics.ticks_skipped_source += 1
            logger.info(f"Source unavailable: {e}")
            self._lose_source()
            return None

        if crop != previous_crop:
            logger.info(f"Crop recomputed for {frame.width}x{frame.height}: {crop.to_dict()}")
            self.observers.notify("on_crop_changed", crop, (frame.width, frame.height))

        baseline = self.session.baseline
        try:
            thumbnail, classification, encoded = await asyncio.to_thread(
                self._process_frame, frame.pixels, crop, baseline
            )
        except SourceUnavailableError as e:
            self.metrics.ticks_skipped_source += 1
            logger.info(f"Degenerate frame: {e}")
            self._lose_source()
            return None

        if generation != self._generation or self.session.status != CaptureStatus.CAPTURING:
            logger.debug("Session changed while tick was in flight, discarding result")
            return None

        self._apply(frame, crop, thumbnail, classification, encoded)
        return classification

    def _process_frame(
        self,
        pixels: np.ndarray,
        crop: Rect,
        baseline: Optional[Baseline],
    ) -> ProcessResult:
        """Reduce, classify and (if distinct) encode. Runs off the event loop."""
        thumbnail = reduce_frame(pixels, crop, self.thumbnail_size)
        classification = self.pipeline.evaluate(thumbnail, baseline)

        encoded = None
        if classification.is_distinct:
            encoded = encode_image(crop.crop_from(pixels), self.image_format, self.quality)

        return thumbnail, classification, encoded

    def _apply(
        self,
        frame: Frame,
        crop: Rect,
        thumbnail: Thumbnail,
        classification: Classification,
        encoded: Optional[bytes],
    ) -> None:
        """Apply a tick result to the session. Loop thread only."""
        self.session.ticks_processed += 1
        self.metrics.ticks_sampled += 1
        self.metrics.last_similarity = classification.similarity

        if classification.is_distinct and encoded is not None:
            retained = RetainedFrame(
                index=self.session.next_index,
                image=encoded,
                timestamp=self._wall_clock(),
                width=crop.width,
                height=crop.height,
                media_type=self.media_type,
                average_hash_hex=(
                    bits_to_hex(classification.average_hash)
                    if classification.average_hash is not None else None
                ),
                perceptual_hash_hex=(
                    bits_to_hex(classification.perceptual_hash)
                    if classification.perceptual_hash is not None else None
                ),
                source_frame_id=frame.frame_id,
            )
            self.session.retain(
                retained,
                Baseline(
                    thumbnail=thumbnail,
                    average_hash=classification.average_hash,
                    perceptual_hash=classification.perceptual_hash,
                ),
            )
            self.metrics.distinct_frames += 1
            logger.info(
                f"Retained frame #{retained.index} "
                f"(reason={classification.reason.value}, "
                f"similarity={classification.similarity})"
            )
            self.observers.notify("on_frame_retained", retained, classification, frame)
        else:
            self.metrics.record_duplicate(classification.reason.value)
            logger.debug(f"Duplicate frame: {classification!r}")

        if self.session.ticks_processed % self.log_every_n_ticks == 0:
            logger.info(
                f"Capture [tick {self.session.ticks_processed}]: "
                f"retained={len(self.session.retained_frames)}, "
                f"duplicates={self.metrics.duplicates}, "
                f"errors={self.metrics.tick_errors}"
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _locate(self) -> Optional[FrameSource]:
        try:
            return self.locator.locate()
        except SourceUnavailableError as e:
            logger.debug(f"Locator found nothing: {e}")
            return None

    def _acquire(self, source: FrameSource) -> None:
        width, height = source.dimensions()
        self._source = source
        self._crop_for(width, height)
        self.metrics.sources_acquired += 1
        logger.info(
            f"Source acquired: {width}x{height}, crop={self._crop_rect.to_dict()}"
        )
        self.observers.notify("on_source_acquired", source, self._crop_rect)

    def _drop_source(self) -> None:
        self._source = None

    def _lose_source(self) -> None:
        """Drop the source mid-session and tell observers."""
        self._drop_source()
        self.observers.notify("on_source_lost")

    def _crop_for(self, width: int, height: int) -> Rect:
        if self._crop_rect is None or self._source_size != (width, height):
            self._crop_rect = compute_crop(width, height, self.crop)
            self._source_size = (width, height)
        return self._crop_rect

    def _set_status(self, status: CaptureStatus, reason: ReasonCode) -> None:
        old = self.session.status
        self.session.status = status
        self.session.status_reason = reason
        if old != status:
            logger.info(f"Session {self.session.session_id}: {old.value} → {status.value} ({reason.value})")
            self.observers.notify("on_status_changed", old, status, reason)

    def _begin_search(self, reason: ReasonCode) -> None:
        self._cancel_timers()
        self.session.searching_since = self._clock()
        self._set_status(CaptureStatus.SEARCHING, reason)
        self._start_search_timer()

    async def _enter_stopped(self, reason: ReasonCode) -> None:
        self._generation += 1
        self._cancel_timers()
        self._drop_source()
        self._set_status(CaptureStatus.STOPPED, reason)
        await self._finalize()

    async def _finalize(self) -> None:
        """Hand retained frames to the sink, once per session."""
        if self.session.finalized:
            return
        self.session.finalized = True

        frames = self.session.frames
        if self.sink is None:
            logger.info(f"Session stopped with {len(frames)} frame(s), no sink configured")
            return

        try:
            self.last_archive = await asyncio.to_thread(self.sink.package, frames)
            self.metrics.finalizations += 1
        except Exception:
            logger.exception(f"Sink {type(self.sink).__name__} failed to package frames")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_search_timer(self) -> None:
        if self._timers:
            self._search_task = asyncio.create_task(self._search_loop())

    def _start_tick_timer(self) -> None:
        if self._timers:
            self._tick_task = asyncio.create_task(self._tick_loop())

    def _cancel_timers(self) -> None:
        """Cancel both timers, except the task that is calling this."""
        if not self._timers:
            return
        current = asyncio.current_task()
        for task in (self._search_task, self._tick_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._search_task = None
        self._tick_task = None

    async def _search_loop(self) -> None:
        period = self.timings.search_interval_sec
        while self.session.status == CaptureStatus.SEARCHING:
            started = self._clock()
            await self.search_tick()
            if self.session.status != CaptureStatus.SEARCHING:
                break
            await asyncio.sleep(max(0.0, period - (self._clock() - started)))

    async def _tick_loop(self) -> None:
        period = self.timings.tick_interval_sec
        while self.session.status == CaptureStatus.CAPTURING:
            started = self._clock()
            await self.tick()
            if self.session.status != CaptureStatus.CAPTURING:
                break
            await asyncio.sleep(max(0.0, period - (self._clock() - started)))
