# ═══════════════════════════════════════════════════════════════════════════════
# PART 3: MENSTRUAL CYCLE
# Design: day/phase derivation from the cyclic hormone anchor
# Implementation: Modulation
# ═══════════════════════════════════════════════════════════════════════════════

"""
The cycle day is derived from elapsed time on the estradiol model's anchor,
so it survives save/load together with that anchor. Phase day-ranges are
given on a 28-day basis and scaled to the configured length. FSH and LH are
set by day; estradiol and progesterone follow the cyclic models on the
same anchor.

Emotional modulation by phase is applied to the expressed state only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from neurocore.core.state import CoreState, CyclePhase

logger = logging.getLogger(__name__)

DAY_MS = 86_400_000

# Last day of each phase on a 28-day cycle.
PHASE_BOUNDARIES = (
    (5, CyclePhase.MENSTRUAL),
    (12, CyclePhase.FOLLICULAR),
    (15, CyclePhase.OVULATION),
    (21, CyclePhase.LUTEAL_EARLY),
    (28, CyclePhase.LUTEAL_LATE),
)


@dataclass
class CycleConfig:
    """Cycle geometry and gonadotropin profile (days on a 28-day basis)."""
    cycle_length: int = 28
    start_day: int = 5                 # cycle day at elapsed 0

    ovulation_day: float = 14.0
    fsh_floor: float = 0.1
    fsh_menstrual_peak: float = 0.3    # early-follicular recruitment rise
    fsh_menstrual_day: float = 2.0
    fsh_menstrual_width: float = 2.5
    fsh_midcycle_peak: float = 0.2
    lh_floor: float = 0.06
    lh_surge_peak: float = 0.84        # floor + peak = 0.9 at ovulation
    surge_width: float = 0.75          # ~36 h surge
    stress_suppression_threshold: float = 0.7


class MenstrualCycle:
    """Maps elapsed time to cycle day and phase; phase-dependent emotion shifts."""

    def __init__(self, config: Optional[CycleConfig] = None):
        self.config = config or CycleConfig()
        if self.config.cycle_length < 1:
            logger.warning("Cycle length %r clamped to 28", self.config.cycle_length)
            self.config.cycle_length = 28

    # ── Public Methods ───────────────────────────────────────────────────────

    def day_at(self, elapsed_ms: float) -> int:
        """Cycle day (1..cycle_length) after elapsed_ms on the anchor."""
        length = self.config.cycle_length
        elapsed_days = int(np.floor(max(0.0, elapsed_ms) / DAY_MS))
        return (self.config.start_day - 1 + elapsed_days) % length + 1

    def phase_for_day(self, day: int) -> CyclePhase:
        scale = self.config.cycle_length / 28.0
        for last_day, phase in PHASE_BOUNDARIES:
            if day <= last_day * scale:
                return phase
        return CyclePhase.LUTEAL_LATE

    def gonadotropins(self, day: int, chronic_stress: float = 0.0) -> Tuple[float, float]:
        """
        (fsh, lh) for a cycle day.

        FSH rises at menses and again with the mid-cycle surge; LH is low
        apart from the ovulatory surge. Chronic stress above the threshold
        suppresses both, LH more strongly.
        """
        cfg = self.config
        d = day * 28.0 / cfg.cycle_length
        surge = _bump(d, cfg.ovulation_day, cfg.surge_width)
        fsh = (
            cfg.fsh_floor
            + cfg.fsh_menstrual_peak * _bump(d, cfg.fsh_menstrual_day, cfg.fsh_menstrual_width)
            + cfg.fsh_midcycle_peak * surge
        )
        lh = cfg.lh_floor + cfg.lh_surge_peak * surge

        if chronic_stress > cfg.stress_suppression_threshold:
            fsh *= 1 - chronic_stress * 0.3
            lh *= 1 - chronic_stress * 0.4
        return float(np.clip(fsh, 0.0, 1.0)), float(np.clip(lh, 0.0, 1.0))

    def update(self, state: CoreState, elapsed_ms: float) -> CoreState:
        """Copy of state with cycle_day, cycle_phase, fsh and lh set."""
        new = state.copy()
        new.cycle_day = self.day_at(elapsed_ms)
        new.cycle_phase = self.phase_for_day(new.cycle_day)
        new.fsh, new.lh = self.gonadotropins(new.cycle_day, new.chronic_stress)
        if new.cycle_phase != state.cycle_phase:
            logger.info("Cycle phase %s -> %s (day %d)",
                        state.cycle_phase.value, new.cycle_phase.value, new.cycle_day)
        return new

    def luteal_vulnerability(self, day: int) -> float:
        """0 at the start of the late luteal phase, 1 on the last day."""
        scale = self.config.cycle_length / 28.0
        start = 21 * scale
        span = max(1.0, self.config.cycle_length - start)
        return float(np.clip((day - start) / span, 0.0, 1.0))

    def modulate_emotions(self, state: CoreState) -> CoreState:
        """Phase-dependent emotional shifts on a copy of state (unclamped)."""
        s = state.copy()
        e2 = s.estradiol
        p4 = s.progesterone
        t = s.testosterone
        phase = s.cycle_phase

        if phase == CyclePhase.MENSTRUAL:
            s.tristezza += 0.15
            s.energy *= 0.85
            s.disagio += 0.2
            s.timidezza += 0.1

        elif phase == CyclePhase.FOLLICULAR:
            s.felicita *= 1 + e2 * 0.4
            s.energy *= 1 + e2 * 0.35
            s.orgoglio *= 1 + t * 0.3
            s.amore *= 1 + e2 * 0.2
            s.tristezza *= 1 - e2 * 0.25
            s.anxiety *= 1 - e2 * 0.2

        elif phase == CyclePhase.OVULATION:
            boost = 1.5 if s.lh > 0.5 else 1.2
            s.felicita *= 1 + e2 * 0.5 * boost
            s.orgoglio *= 1 + t * 0.6 * boost
            s.amore *= 1 + e2 * 0.35
            s.energy *= 1.3
            s.invidia *= 0.8
            s.rancore *= 0.7
            s.rabbia *= 0.85

        elif phase == CyclePhase.LUTEAL_EARLY:
            s.sollievo += 0.15
            s.calma += p4 * 0.25

        elif phase == CyclePhase.LUTEAL_LATE:
            proxy = p4 * (1 + self.luteal_vulnerability(s.cycle_day))
            s.irritability += proxy * 0.4
            s.tristezza *= 1 + proxy * 0.35
            s.anxiety += proxy * 0.4
            s.paura *= 1 + proxy * 0.3
            s.vergogna *= 1 + proxy * 0.25
            s.colpa *= 1 + proxy * 0.3
            s.felicita *= 1 - proxy * 0.35
            s.energy *= 1 - proxy * 0.4
            s.amore *= 1 - proxy * 0.2

        return s

    def get_state(self) -> dict:
        return {"cycle_length": self.config.cycle_length, "start_day": self.config.start_day}


def _bump(x: float, center: float, width: float) -> float:
    return float(np.exp(-((x - center) ** 2) / (2 * width ** 2)))
