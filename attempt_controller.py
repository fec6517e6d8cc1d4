# -*- coding: utf-8 -*-
########################
# attempt_controller.py
########################
# Purpose:
# - Owns the training pipeline: DevicePoller -> FrameQuantizer / InputBuffer -> MotionRecognizer -> TimingClassifier.
# - Sequences one attempt per button 2 press and resets attempt state afterwards.
#
# Design notes:
# - No Qt usage. The host drives it through a Scheduler (ManualScheduler in tests, QtScheduler in the app).
# - Single threaded. Key callbacks and ticks are serialized by the host, so there are no locks.
# - Button 2 presses during the cooldown are ignored. The cooldown is a cancelable timer handle.
# - set_bindings() is a session boundary: every in-flight attempt structure is cleared.
# - Timeline frames older than stale_input_ms (capped at the motion span) relative to the newest
#   direction are dropped, so an abandoned forward tap cannot anchor a later motion.
#
########################
# Interfaces:
# Public classes:
# - class AttemptController
#   - __init__(config: TrainerConfig, scheduler: Scheduler, *, bindings=None, poller=None,
#              recognizer=None, classifier=None, session_start_ms=None)
#   - start(device: Optional[DeviceSource] = None) -> None
#   - stop() -> None
#   - tick(now_ms: Optional[float] = None) -> None
#   - set_bindings(bindings: BindingSet) -> None
#   - reset() -> None
#   - on_result(callback) / on_direction(callback) / on_button2(callback) -> Callable[[], None]
#   - last_result() -> Optional[ClassificationResult]
#   - attempt_records() -> list[AttemptRecord]
#   - stats() -> SessionStats
#   - timeline() -> tuple[FrameRecord, ...]
#   - entries() -> tuple[DirectionalEntry, ...]
#   - history() -> InputHistory
#
# Public functions:
# - evaluate_timeline(timeline, recognizer=None, classifier=None) -> ClassificationResult
#
# Inputs:
# - Device collaborator (keyboard callbacks, gamepad snapshots), BindingSet from calibration.
#
# Outputs:
# - ClassificationResult per attempt, AttemptRecord rows for persistence, history rows for presentation.
#
########################

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence

from bindings import BindingSet
from device_poller import DevicePoller, DeviceSource
from frame_quantizer import FrameQuantizer
from input_buffer import InputBuffer
from input_history import InputHistory
from input_models import (
    AttemptRecord,
    Button2Event,
    ButtonId,
    ButtonMarker,
    ClassificationResult,
    DirectionEvent,
    FrameRecord,
    MotionMatch,
)
from motion_recognizer import AttemptSnapshot, MotionRecognizer, StructuralScanRecognizer, build_recognizer
from session_stats import SessionStats
from tick_scheduler import CooldownTimer, Scheduler, TimerHandle
from timing_classifier import FrameCountPolicy, TimingClassifier, build_classifier
from trainer_config import TrainerConfig

logger = logging.getLogger(__name__)


def evaluate_timeline(
    timeline: Sequence[FrameRecord],
    recognizer: Optional[MotionRecognizer] = None,
    classifier: Optional[TimingClassifier] = None,
) -> ClassificationResult:
    """
    Classify a finished timeline.

    The latest frame holding button 2 is the action marker. A timeline without
    button 2 is a miss.
    """
    recognizer_obj = recognizer if recognizer is not None else StructuralScanRecognizer()
    classifier_obj = classifier if classifier is not None else FrameCountPolicy()

    button_record: Optional[FrameRecord] = None
    for record in timeline:
        if record.has_button(ButtonId.BUTTON_2):
            button_record = record

    if button_record is None:
        return classifier_obj.classify(MotionMatch.not_detected("no button 2"), ButtonMarker(frame_number=-1))

    motion = recognizer_obj.recognize(AttemptSnapshot(timeline=tuple(timeline)))
    button = ButtonMarker(
        frame_number=button_record.frame_number,
        timestamp_ms=button_record.button_times_ms.get(ButtonId.BUTTON_2),
    )
    return classifier_obj.classify(motion, button)


class AttemptController:
    def __init__(
        self,
        config: TrainerConfig,
        scheduler: Scheduler,
        *,
        bindings: Optional[BindingSet] = None,
        poller: Optional[DevicePoller] = None,
        recognizer: Optional[MotionRecognizer] = None,
        classifier: Optional[TimingClassifier] = None,
        session_start_ms: Optional[float] = None,
    ) -> None:
        self._config = config
        self._scheduler = scheduler

        start_ms = float(session_start_ms) if session_start_ms is not None else float(scheduler.now_ms())
        self._quantizer = FrameQuantizer(start_ms, config.timing.frame_duration_ms)
        self._buffer = InputBuffer(max_entries=config.buffer.max_entries, ttl_ms=config.buffer.ttl_ms)
        self._history = InputHistory(self._quantizer.frame_of, max_entries=config.history.max_entries)

        self._poller = poller if poller is not None else DevicePoller(config, bindings, clock_ms=scheduler.now_ms)
        if poller is not None and bindings is not None:
            self._poller.set_bindings(bindings)

        self._recognizer = recognizer if recognizer is not None else build_recognizer(config, self._quantizer.frame_of)
        self._classifier = classifier if classifier is not None else build_classifier(config)

        self._cooldown = CooldownTimer(scheduler, config.attempt.cooldown_ms)
        self._tick_handle: Optional[TimerHandle] = None
        self._is_training = False

        self._result_listeners: List[Callable[[ClassificationResult], None]] = []
        self._last_result: Optional[ClassificationResult] = None
        self._stats = SessionStats(moving_average_window=config.stats.moving_average_window)

        self._poller.on_direction(self._on_direction_event)
        self._poller.on_button2(self._on_button2_event)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def poller(self) -> DevicePoller:
        return self._poller

    @property
    def quantizer(self) -> FrameQuantizer:
        return self._quantizer

    @property
    def recognizer(self) -> MotionRecognizer:
        return self._recognizer

    @property
    def classifier(self) -> TimingClassifier:
        return self._classifier

    @property
    def is_training(self) -> bool:
        return self._is_training

    @property
    def is_cooling_down(self) -> bool:
        return self._cooldown.active

    def timeline(self) -> tuple:
        return self._quantizer.timeline()

    def entries(self) -> tuple:
        return self._buffer.entries(self._scheduler.now_ms())

    def history(self) -> InputHistory:
        return self._history

    def last_result(self) -> Optional[ClassificationResult]:
        return self._last_result

    def attempt_records(self) -> List[AttemptRecord]:
        return self._stats.records()

    def stats(self) -> SessionStats:
        return self._stats

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on_result(self, callback: Callable[[ClassificationResult], None]) -> Callable[[], None]:
        self._result_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._result_listeners:
                self._result_listeners.remove(callback)

        return unsubscribe

    def on_direction(self, callback: Callable[[DirectionEvent], None]) -> Callable[[], None]:
        return self._poller.on_direction(callback)

    def on_button2(self, callback: Callable[[Button2Event], None]) -> Callable[[], None]:
        return self._poller.on_button2(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, device: Optional[DeviceSource] = None) -> None:
        self.stop()
        self._poller.start(device)
        self._tick_handle = self._scheduler.call_repeating(self._config.attempt.tick_interval_ms, self.tick)
        self._is_training = True
        logger.info(
            "Training started (recognizer=%s, classifier=%s)",
            self._recognizer.name,
            self._classifier.name,
        )

    def stop(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        self._cooldown.cancel()
        self._poller.stop()
        if self._is_training:
            logger.info("Training stopped")
        self._is_training = False

    def tick(self, now_ms: Optional[float] = None) -> None:
        self._poller.tick(self._scheduler.now_ms() if now_ms is None else now_ms)

    def set_bindings(self, bindings: BindingSet) -> None:
        """Install new bindings. Treated as a session boundary."""
        self._poller.set_bindings(bindings)
        self._cooldown.cancel()
        self._clear_attempt_state()
        logger.info("Bindings changed; in-flight attempt state cleared")

    def reset(self) -> None:
        self._cooldown.cancel()
        self._clear_attempt_state()
        logger.info("Attempt state reset")

    def _clear_attempt_state(self) -> None:
        self._quantizer.clear()
        self._buffer.clear()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_direction_event(self, event: DirectionEvent) -> None:
        if not self._is_training:
            return

        now_ms = self._scheduler.now_ms()
        frame_number = self._quantizer.record_direction(event.direction, event.timestamp_ms)
        self._buffer.add_direction(event.direction, event.timestamp_ms, now_ms)
        self._history.record_direction(event.direction, event.timestamp_ms)

        horizon = frame_number - self._stale_horizon_frames()
        dropped = self._quantizer.discard_before(horizon)
        if dropped:
            logger.debug("Dropped %d stale frame(s) before frame %d", dropped, horizon)

    def _stale_horizon_frames(self) -> int:
        # A forward further back than the motion span cannot start a motion that completes from here on.
        stale_frames = int(math.ceil(self._config.attempt.stale_input_ms / self._quantizer.frame_duration_ms()))
        return min(stale_frames, int(self._config.timing.max_motion_span_frames))

    def _on_button2_event(self, event: Button2Event) -> None:
        if not self._is_training:
            return

        if self._cooldown.active:
            logger.debug("Button 2 at %.2f ms ignored during cooldown", event.timestamp_ms)
            return
        self._cooldown.start()

        now_ms = self._scheduler.now_ms()
        self._quantizer.record_button(ButtonId.BUTTON_2, event.timestamp_ms)
        self._buffer.record_button2(event.timestamp_ms, now_ms)
        self._history.record_button2(event.timestamp_ms, self._buffer.last_down_forward_ms(now_ms))

        result = self._classify_attempt(event.timestamp_ms, now_ms)

        self._last_result = result
        self._stats.record(AttemptRecord.from_result(result, timestamp_ms=event.timestamp_ms))
        self._clear_attempt_state()

        for listener in list(self._result_listeners):
            listener(result)

    def _classify_attempt(self, button_timestamp_ms: float, now_ms: float) -> ClassificationResult:
        entries: tuple = self._buffer.entries(now_ms)
        snapshot = AttemptSnapshot(timeline=self._quantizer.timeline(), entries=entries)
        motion = self._recognizer.recognize(snapshot)
        button = ButtonMarker(
            frame_number=self._quantizer.frame_of(button_timestamp_ms),
            timestamp_ms=float(button_timestamp_ms),
        )
        result = self._classifier.classify(motion, button)

        if not motion.detected:
            logger.info("Attempt: %s (no motion: %s)", result.tier.value, motion.reason)
        else:
            logger.info(
                "Attempt: %s input_frames=%d total_frames=%d delta_ms=%s frames %d..%d button %d",
                result.tier.value,
                result.input_frames,
                result.total_frames,
                "n/a" if result.delta_ms is None else f"{result.delta_ms:.2f}",
                motion.motion_start_frame,
                motion.motion_completion_frame,
                button.frame_number,
            )
        return result


def _run_unit_tests() -> None:
    from input_models import Direction, Tier
    from tick_scheduler import ManualScheduler

    frame_ms = 1000.0 / 60.0
    scheduler = ManualScheduler()
    controller = AttemptController(TrainerConfig(), scheduler)
    results: List[ClassificationResult] = []
    controller.on_result(results.append)
    controller.start()

    poller = controller.poller
    poller.handle_key_down("d", 1.0)
    poller.handle_key_up("d", frame_ms + 1.0)
    poller.handle_key_down("s", frame_ms + 2.0)
    poller.handle_key_down("d", frame_ms + 3.0)
    poller.handle_key_down(" ", frame_ms + 4.0)

    assert len(results) == 1
    assert results[0].tier == Tier.TOP
    assert controller.timeline() == ()

    poller.handle_key_up(" ", frame_ms + 5.0)
    poller.handle_key_down(" ", frame_ms + 6.0)
    assert len(results) == 1

    scheduler.advance(250.0)
    poller.handle_key_down(" ", 300.0)
    assert len(results) == 2
    assert results[1].tier == Tier.MISS
    assert controller.poller.current_direction() == Direction.DOWN_FORWARD


if __name__ == "__main__":
    _run_unit_tests()
    print("attempt_controller.py: ok")
