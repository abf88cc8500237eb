# ═══════════════════════════════════════════════════════════════════════════════
# PART 5: RHYTHM DETECTION
# Design: IOI histogram + phase-locked entrainment
# Implementation: Oscillators
# ═══════════════════════════════════════════════════════════════════════════════

"""
Detects periodicity in stimulus timing. Inter-onset intervals (IOIs) are
binned at 50 ms; the dominant bin gives the beat period and its share of all
IOIs the confidence. Once confident, an internal oscillator phase-locks to
the beat.

The modulation signal (0..1, 0.5 when not entrained) is turned into a
stimulus-intensity multiplier by the engine.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

BIN_SIZE_MS = 50.0
MAX_IOI_MS = 5000.0
ENTRAINED_MIN = 0.7


@dataclass
class EntrainmentParams:
    """Phase-locked loop tuning."""
    adaptation_rate: float = 0.1       # how quickly entrainment follows coherence
    lock_threshold: float = 0.6        # minimum confidence to lock
    coupling_strength: float = 0.5     # phase correction gain
    tempo_tolerance: float = 0.15
    max_history: int = 100


@dataclass
class RhythmEvent:
    timestamp: float                   # ms
    intensity: float = 1.0
    source: str = "stimulus"           # stimulus | internal | motor


@dataclass
class RhythmState:
    beat_period: Optional[float] = None
    phase: float = 0.0
    confidence: float = 0.0
    bpm: Optional[float] = None
    entrainment: float = 0.0
    last_beat_time: float = 0.0
    next_beat_time: Optional[float] = None


class RhythmDetector:
    """Beat detector with a phase-locked internal oscillator."""

    def __init__(self, params: Optional[EntrainmentParams] = None):
        self.params = params or EntrainmentParams()
        self.history: Deque[RhythmEvent] = deque(maxlen=self.params.max_history)
        self.state = RhythmState()
        self.internal_phase: float = 0.0
        self.internal_frequency: float = 1.0   # Hz
        self.current_time_ms: float = 0.0

    # ── Public Methods ───────────────────────────────────────────────────────

    def add_event(self, event: RhythmEvent) -> None:
        self.history.append(event)
        self.current_time_ms = max(self.current_time_ms, event.timestamp)
        self._detect()
        self._entrain(event.timestamp)

    def tick(self, delta_ms: float) -> None:
        """Free-run (or follow the locked beat) for delta_ms."""
        self.current_time_ms += delta_ms
        if self.state.beat_period and self.is_entrained():
            self.internal_phase = (self.internal_phase + delta_ms / self.state.beat_period) % 1.0
            self.state.phase = self.internal_phase
            self.state.next_beat_time = (
                self.current_time_ms + (1.0 - self.internal_phase) * self.state.beat_period
            )
        else:
            increment = delta_ms * self.internal_frequency / 1000.0
            self.internal_phase = (self.internal_phase + increment) % 1.0
            self.state.phase = self.internal_phase

    def is_entrained(self) -> bool:
        return (
            self.state.confidence >= self.params.lock_threshold
            and self.state.entrainment >= ENTRAINED_MIN
        )

    def predict_next_beat(self) -> Optional[Tuple[float, float]]:
        """(time_ms, confidence) of the next expected beat, if any."""
        if not self.state.next_beat_time or self.state.confidence < 0.5:
            return None
        return self.state.next_beat_time, self.state.confidence * self.state.entrainment

    def get_phase_at(self, timestamp: float) -> Optional[float]:
        if not self.state.beat_period:
            return None
        return ((timestamp - self.state.last_beat_time) / self.state.beat_period) % 1.0

    def get_modulation_signal(self) -> float:
        if not self.is_entrained():
            return 0.5
        return float(0.5 + 0.5 * np.sin(2 * np.pi * self.state.phase))

    def reset(self) -> None:
        self.history.clear()
        self.state = RhythmState()
        self.internal_phase = 0.0

    def get_state(self) -> dict:
        return {
            "state": asdict(self.state),
            "recent_events": [asdict(e) for e in list(self.history)[-20:]],
            "oscillator_phase": self.internal_phase,
            "oscillator_frequency": self.internal_frequency,
        }

    def restore(self, data: dict) -> None:
        """Inverse of get_state (only the recent events are recovered)."""
        self.state = RhythmState(**data.get("state", {}))
        self.history.clear()
        for event in data.get("recent_events", []):
            self.history.append(RhythmEvent(**event))
        self.internal_phase = float(data.get("oscillator_phase", 0.0))
        self.internal_frequency = float(data.get("oscillator_frequency", 1.0))
        if self.history:
            self.current_time_ms = max(self.current_time_ms, self.history[-1].timestamp)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _intervals(self) -> List[float]:
        events = list(self.history)
        iois = [b.timestamp - a.timestamp for a, b in zip(events, events[1:])]
        return [ioi for ioi in iois if 0 < ioi < MAX_IOI_MS]

    def _detect(self) -> None:
        if len(self.history) < 3:
            self.state.confidence = 0.0
            return
        iois = self._intervals()
        if len(iois) < 2:
            self.state.confidence = 0.0
            return

        histogram: Dict[float, int] = {}
        for ioi in iois:
            bin_center = float(np.floor(ioi / BIN_SIZE_MS + 0.5) * BIN_SIZE_MS)
            histogram[bin_center] = histogram.get(bin_center, 0) + 1

        # First bin wins ties.
        period, count = None, 0
        for bin_center, n in histogram.items():
            if n > count:
                period, count = bin_center, n
        if not period:
            return

        self.state.beat_period = period
        self.state.bpm = 60_000.0 / period
        self.state.confidence = count / len(iois)
        if self.state.confidence >= self.params.lock_threshold:
            self.internal_frequency = 1000.0 / period

    def _entrain(self, now: float) -> None:
        p = self.params
        if not self.state.beat_period or self.state.confidence < p.lock_threshold:
            self.state.entrainment = max(0.0, self.state.entrainment - 0.01)
            return

        expected = ((now - self.state.last_beat_time) / self.state.beat_period) % 1.0
        # Phase error wrapped to [-0.5, 0.5); loop gain is coupling_strength.
        error = (expected - self.internal_phase + 0.5) % 1.0 - 0.5
        correction = p.coupling_strength * np.sin(2 * np.pi * error) / (2 * np.pi)
        self.internal_phase = float((self.internal_phase + correction) % 1.0)

        coherence = 1.0 - 2.0 * abs(error)
        self.state.entrainment = float(
            p.adaptation_rate * coherence + (1.0 - p.adaptation_rate) * self.state.entrainment
        )
        self.state.phase = float(self.internal_phase)
        self.state.last_beat_time = now
        self.state.next_beat_time = now + (1.0 - self.internal_phase) * self.state.beat_period
        logger.debug("entrainment %.3f period %.0fms", self.state.entrainment, self.state.beat_period)


class MultiScaleRhythmAnalyzer:
    """Three detectors with increasing lock thresholds."""

    SCALES = ("micro", "meso", "macro")

    def __init__(self):
        self.detectors: Dict[str, RhythmDetector] = {
            "micro": RhythmDetector(EntrainmentParams(adaptation_rate=0.05, lock_threshold=0.5)),
            "meso": RhythmDetector(EntrainmentParams(adaptation_rate=0.1, lock_threshold=0.6)),
            "macro": RhythmDetector(EntrainmentParams(adaptation_rate=0.2, lock_threshold=0.7)),
        }

    def add_event(self, event: RhythmEvent) -> None:
        for detector in self.detectors.values():
            detector.add_event(event)

    def tick(self, delta_ms: float) -> None:
        for detector in self.detectors.values():
            detector.tick(delta_ms)

    def get_dominant_rhythm(self) -> Optional[Tuple[str, RhythmState]]:
        best, dominant = 0.0, None
        for scale in self.SCALES:
            state = self.detectors[scale].state
            if state.confidence > best:
                best, dominant = state.confidence, (scale, state)
        return dominant

    def get_all_states(self) -> Dict[str, RhythmState]:
        return {scale: self.detectors[scale].state for scale in self.SCALES}

    def reset(self) -> None:
        for detector in self.detectors.values():
            detector.reset()
