# ═══════════════════════════════════════════════════════════════════════════════
# PART 4: CIRCADIAN CLOCK
# Design: time-of-day oscillator + ultradian phases
# Implementation: Modulation
# ═══════════════════════════════════════════════════════════════════════════════

"""
Independent oscillator driven by tick(elapsed_ms). It produces time-of-day
multipliers for cortisol, dopamine and testosterone, a melatonin level, and
small emotional shifts by phase of day.

Cortisol, melatonin and testosterone curves use the integer hour. Dopamine's
circadian component and the emotional shifts use the fractional hour.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

import numpy as np

from neurocore.core.state import CoreState, CyclePhase

logger = logging.getLogger(__name__)


class SleepStage(Enum):
    AWAKE = "awake"
    NREM1 = "nrem1"
    NREM2 = "nrem2"
    NREM3 = "nrem3"
    REM = "rem"


@dataclass(frozen=True)
class ChronotypeProfile:
    name: str
    sleep_onset: float          # hour of day
    sleep_duration: float       # hours
    peak_alertness: float       # hour of day
    circadian_period: float     # hours
    light_sensitivity: float    # 0-1


CHRONOTYPES: Dict[str, ChronotypeProfile] = {
    "early_bird": ChronotypeProfile("early_bird", 21.0, 7.0, 8.0, 24.0, 0.8),
    "intermediate": ChronotypeProfile("intermediate", 23.0, 7.5, 10.0, 24.2, 0.6),
    "night_owl": ChronotypeProfile("night_owl", 1.0, 7.0, 13.0, 24.4, 0.4),
}


@dataclass
class CircadianConfig:
    """Reference curve constants."""
    gender: str = "female"                  # female | male | other
    chronotype: str = "intermediate"
    latitude: float = 40.0                  # degrees

    cortisol_peak_hour: float = 6.5
    cortisol_peak_value: float = 1.5
    cortisol_trough_value: float = 0.3
    cortisol_peak_width: float = 3.0

    melatonin_onset_hour: float = 20.5
    melatonin_offset_hour: float = 7.0
    melatonin_peak_value: float = 0.8
    light_saturation_lux: float = 500.0

    dopamine_peak_hour: float = 12.0
    ultradian_minutes: float = 90.0
    norepinephrine_ultradian_minutes: float = 120.0

    testosterone_peak_hour: float = 6.0
    testosterone_peak_value: float = 1.3
    testosterone_peak_width: float = 4.0

    wake_hours_before_debt: float = 16.0
    max_sleep_debt: float = 48.0
    auto_sleep: bool = False                # follow the chronotype sleep window


class CircadianClock:
    """
    Wall-clock style circadian oscillator.

    Must be ticked with the same elapsed time as StateDynamics.step to stay in
    sync with the rest of the pipeline.
    """

    def __init__(
        self,
        config: Optional[CircadianConfig] = None,
        start_time: Optional[datetime] = None,
    ):
        self.config = config or CircadianConfig()
        cfg = self.config
        if cfg.chronotype not in CHRONOTYPES:
            logger.warning("Unknown chronotype %r, using intermediate", cfg.chronotype)
            cfg.chronotype = "intermediate"

        self.current_time: datetime = start_time or datetime.now()
        self.ultradian_phase: float = 0.0
        self.norepinephrine_phase: float = 0.0

        self.stress_level: float = 0.0
        self.robustness: float = 1.0
        self.light_intensity: float = 0.0   # lux

        self.cycle_phase: Optional[CyclePhase] = None
        self.cycle_day: int = 1

        self.sleep_stage: SleepStage = SleepStage.AWAKE
        self.hours_awake: float = 0.0
        self.sleep_debt: float = 0.0

        self.photoperiod: float = 12.0
        self._update_photoperiod()

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def chronotype(self) -> ChronotypeProfile:
        return CHRONOTYPES[self.config.chronotype]

    @property
    def hour(self) -> int:
        return self.current_time.hour

    @property
    def circadian_phase(self) -> float:
        """Fractional hour of day, 0-24."""
        t = self.current_time
        return t.hour + t.minute / 60.0

    @property
    def day_of_year(self) -> int:
        return self.current_time.timetuple().tm_yday

    @property
    def is_female(self) -> bool:
        return self.config.gender == "female"

    # ── Public Methods ───────────────────────────────────────────────────────

    def tick(self, elapsed_ms: float) -> None:
        """Advance the clock; updates ultradian phases, sleep debt, photoperiod."""
        if elapsed_ms < 0:
            logger.warning("Negative elapsed time %r treated as 0", elapsed_ms)
            elapsed_ms = 0.0
        cfg = self.config
        previous_day = self.day_of_year
        self.current_time += timedelta(milliseconds=elapsed_ms)

        minutes = elapsed_ms / 60_000.0
        hours = minutes / 60.0
        self.ultradian_phase = (self.ultradian_phase + minutes / cfg.ultradian_minutes) % 1.0
        self.norepinephrine_phase = (
            self.norepinephrine_phase + minutes / cfg.norepinephrine_ultradian_minutes
        ) % 1.0

        if cfg.auto_sleep:
            self.set_sleep_stage(SleepStage.NREM2 if self.in_sleep_window() else SleepStage.AWAKE)

        if self.sleep_stage != SleepStage.AWAKE:
            self.sleep_debt = max(0.0, self.sleep_debt - hours)
        else:
            over_before = max(0.0, self.hours_awake - cfg.wake_hours_before_debt)
            self.hours_awake += hours
            over_after = max(0.0, self.hours_awake - cfg.wake_hours_before_debt)
            self.sleep_debt = min(cfg.max_sleep_debt, self.sleep_debt + over_after - over_before)

        if self.day_of_year != previous_day:
            self._update_photoperiod()

        self.robustness = max(0.3, 1.0 - self.stress_level * 0.4)

    def set_stress_level(self, level: float) -> None:
        self.stress_level = float(np.clip(level, 0.0, 1.0))

    def set_light_intensity(self, lux: float) -> None:
        self.light_intensity = max(0.0, float(lux))

    def set_menstrual_cycle(self, phase: CyclePhase, day: int) -> None:
        self.cycle_phase = phase
        self.cycle_day = day

    def set_sleep_stage(self, stage: SleepStage) -> None:
        if stage == SleepStage.AWAKE and self.sleep_stage != SleepStage.AWAKE:
            self.hours_awake = 0.0
        self.sleep_stage = stage

    def in_sleep_window(self) -> bool:
        """True when the current hour is inside the chronotype's sleep window."""
        profile = self.chronotype
        since_onset = (self.circadian_phase - profile.sleep_onset) % 24.0
        return since_onset < profile.sleep_duration

    # ── Multipliers ──────────────────────────────────────────────────────────

    def cortisol_multiplier(self) -> float:
        cfg = self.config
        hour = self.hour
        if hour >= 22 or hour < 5:
            return cfg.cortisol_trough_value

        peak_hour = cfg.cortisol_peak_hour
        peak_value = cfg.cortisol_peak_value
        if self.is_female:
            peak_hour -= 0.5
            peak_value *= 1.2
        if self.cycle_phase in (CyclePhase.LUTEAL_EARLY, CyclePhase.LUTEAL_LATE):
            peak_value *= 1.15

        distance = abs(hour - peak_hour)
        cortisol = peak_value * np.exp(-distance ** 2 / (2 * cfg.cortisol_peak_width ** 2))
        flattening = 1.0 - self.stress_level * 0.3
        return float(np.clip(cortisol * flattening * self.robustness, 0.3, 1.5))

    def melatonin_level(self) -> float:
        cfg = self.config
        hour = self.hour
        onset = cfg.melatonin_onset_hour
        offset = cfg.melatonin_offset_hour

        peak = cfg.melatonin_peak_value * (1.18 if self.is_female else 1.0)
        suppression = min(1.0, self.light_intensity / cfg.light_saturation_lux)
        peak *= 1.0 - suppression * 0.8

        if onset <= hour < onset + 6:
            return float(peak * (hour - onset) / 3.0)
        if hour >= onset + 6 or hour < offset:
            return float(peak)
        if offset <= hour < offset + 2:
            return float(peak * (1.0 - (hour - offset) / 2.0))
        return float(max(0.0, peak * 0.1))

    def dopamine_multiplier(self) -> float:
        ultradian = 1.0 + 0.25 * np.sin(2 * np.pi * self.ultradian_phase)
        return float(ultradian * self._dopamine_circadian())

    def testosterone_multiplier(self) -> float:
        cfg = self.config
        peak_value = cfg.testosterone_peak_value * (0.8 if self.is_female else 1.0)
        distance = abs(self.hour - cfg.testosterone_peak_hour)
        value = peak_value * np.exp(-distance ** 2 / (2 * cfg.testosterone_peak_width ** 2))
        return float(np.clip(value, 0.7, 1.3))

    def modulate(self, state: CoreState) -> CoreState:
        """
        Apply time-of-day effects to a copy of state.

        Multiplied values are not clamped here; the caller's terminal clamp
        restores ranges.
        """
        s = state.copy()
        s.cortisol = s.cortisol * self.cortisol_multiplier()
        s.dopamine = s.dopamine * self.dopamine_multiplier()
        s.testosterone = s.testosterone * self.testosterone_multiplier()
        s.melatonin = self.melatonin_level()
        s.sleep_debt = self.sleep_debt

        hour = self.circadian_phase
        if 6 <= hour < 12:
            s.felicita = float(np.clip(s.felicita + 0.1, 0.0, 1.0))
            s.anxiety = float(np.clip(s.anxiety - 0.05, 0.0, 1.0))
        elif hour >= 22 or hour < 4:
            s.tristezza = float(np.clip(s.tristezza + 0.15, 0.0, 1.0))
            s.anxiety = float(np.clip(s.anxiety + 0.1, 0.0, 1.0))
        return s

    def get_circadian_phase_label(self) -> str:
        hour = self.circadian_phase
        if 5 <= hour < 8:
            return "early_morning"
        if 8 <= hour < 12:
            return "morning"
        if 12 <= hour < 17:
            return "afternoon"
        if 17 <= hour < 21:
            return "evening"
        if hour >= 21 or hour < 2:
            return "night"
        return "deep_night"

    def get_state(self) -> dict:
        return {
            "current_time": self.current_time.isoformat(),
            "ultradian_phase": self.ultradian_phase,
            "norepinephrine_phase": self.norepinephrine_phase,
            "stress_level": self.stress_level,
            "robustness": self.robustness,
            "light_intensity": self.light_intensity,
            "sleep_stage": self.sleep_stage.value,
            "hours_awake": self.hours_awake,
            "sleep_debt": self.sleep_debt,
            "photoperiod": self.photoperiod,
            "phase_label": self.get_circadian_phase_label(),
        }

    def restore(self, data: dict) -> None:
        if "current_time" in data:
            self.current_time = datetime.fromisoformat(data["current_time"])
        self.ultradian_phase = float(data.get("ultradian_phase", self.ultradian_phase))
        self.norepinephrine_phase = float(data.get("norepinephrine_phase", self.norepinephrine_phase))
        self.stress_level = float(data.get("stress_level", self.stress_level))
        self.robustness = float(data.get("robustness", self.robustness))
        self.light_intensity = float(data.get("light_intensity", self.light_intensity))
        self.sleep_stage = SleepStage(data.get("sleep_stage", self.sleep_stage.value))
        self.hours_awake = float(data.get("hours_awake", self.hours_awake))
        self.sleep_debt = float(data.get("sleep_debt", self.sleep_debt))
        self._update_photoperiod()

    # ── Internal ─────────────────────────────────────────────────────────────

    def _dopamine_circadian(self) -> float:
        distance = abs(self.circadian_phase - self.config.dopamine_peak_hour)
        if distance > 12:
            distance -= 12
        return 0.8 + 0.2 * np.cos(distance * np.pi / 12)

    def _update_photoperiod(self) -> None:
        """Day length in hours from latitude and solar declination."""
        lat = np.radians(abs(self.config.latitude))
        declination = 23.45 * np.sin((self.day_of_year - 81) * 2 * np.pi / 365)
        cos_hour_angle = -np.tan(lat) * np.tan(np.radians(declination))
        self.photoperiod = float(24 * np.arccos(np.clip(cos_hour_angle, -1.0, 1.0)) / np.pi)
