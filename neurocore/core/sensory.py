# ═══════════════════════════════════════════════════════════════════════════════
# PART 11: SENSORY INPUT
# Design: discrete stimuli -> intimate sub-state + core nudges
# Implementation: Modulation
# ═══════════════════════════════════════════════════════════════════════════════

"""
Discrete Stimulus events update the IntimateState and nudge a few core
variables. Effective intensity is the stimulus base intensity scaled by
pressure, velocity, sensitivity, habituation, inhibition and the rhythm
multiplier supplied by the caller.

Repeating a stimulus type habituates; switching type resets continuity.
touch_end and long idle periods relax the sub-state back to near-baseline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from neurocore.core.state import CoreState, IntimateState, Stimulus, StimulusType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StimulusEffect:
    intensity: float
    arousal_gain: float
    nerve: str                      # surface_nerve | deep_nerve | visceral_nerve
    oxytocin: float = 0.0
    dopamine: float = 0.0
    cortisol: float = 0.0
    inhibition: float = 0.0
    vulnerability: float = 0.0


STIMULUS_EFFECTS: Dict[StimulusType, StimulusEffect] = {
    StimulusType.TOUCH_START: StimulusEffect(0.4, 0.05, "surface_nerve", 0.02, 0.02, 0.0, -0.01),
    StimulusType.TOUCH_MOVE: StimulusEffect(0.5, 0.06, "surface_nerve", 0.02, 0.03, 0.0, -0.01),
    StimulusType.GENTLE_TOUCH_START: StimulusEffect(
        0.3, 0.03, "surface_nerve", 0.04, 0.01, -0.02, -0.02, 0.01),
    StimulusType.FIRM_TOUCH: StimulusEffect(0.7, 0.08, "deep_nerve", 0.01, 0.04, 0.02, -0.01),
    StimulusType.WHISPER: StimulusEffect(0.35, 0.04, "surface_nerve", 0.03, 0.02, -0.01, -0.02, 0.02),
    StimulusType.TEASE: StimulusEffect(0.5, 0.07, "deep_nerve", 0.01, 0.05, 0.01),
    StimulusType.VULNERABILITY_TRIGGER: StimulusEffect(
        0.6, 0.02, "visceral_nerve", 0.05, 0.0, 0.05, 0.03, 0.1),
}

# Stimuli that end contact rather than add to it.
RELEASE_STIMULI = (StimulusType.TOUCH_END, StimulusType.GENTLE_TOUCH_STOP)


@dataclass
class SensoryConfig:
    habituation_gain: float = 0.05
    habituation_recovery: float = 0.5          # factor on type switch
    habituation_tau_ms: float = 300_000        # idle recovery, 5 minutes
    idle_reset_ms: float = 600_000             # 10 minutes
    climax_arousal_threshold: float = 0.7
    climax_gain: float = 0.5

    # Endorphin rush on peak release
    rush_endorphin: float = 0.9
    rush_erogenous: float = -0.4
    rush_integrity: float = 0.2
    rush_cortisol: float = -0.3


@dataclass
class SensoryResult:
    state: CoreState
    intensity: float
    peak_release: bool = False


def _unit(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def relaxed(intimate: IntimateState) -> IntimateState:
    """Near-baseline sub-state; sensitivity and half the habituation are kept."""
    fresh = IntimateState()
    fresh.sensitivity = intimate.sensitivity
    fresh.habituation = intimate.habituation * 0.5
    fresh.last_stimulus = intimate.last_stimulus
    return fresh


class SensoryModel:
    """Stimulus handling for the intimate sub-state."""

    def __init__(self, config: Optional[SensoryConfig] = None):
        self.config = config or SensoryConfig()

    # ── Public Methods ───────────────────────────────────────────────────────

    def apply(
        self,
        core: CoreState,
        stimulus: Stimulus,
        rhythm_multiplier: float = 1.0,
    ) -> SensoryResult:
        """Apply one stimulus to a copy of core (and its intimate sub-state)."""
        stimulus = Stimulus.of(stimulus)
        new = core.copy()
        intimate = new.intimate
        intimate.idle_ms = 0.0

        if stimulus.type in RELEASE_STIMULI:
            if stimulus.type == StimulusType.TOUCH_END:
                intimate = relaxed(intimate)
            intimate.stimulus_continuity = 0
            intimate.last_stimulus = stimulus
            new.intimate = intimate
            return SensoryResult(new, 0.0)

        self._track_continuity(intimate, stimulus)
        effect = STIMULUS_EFFECTS[stimulus.type]
        intensity = self.effective_intensity(intimate, stimulus, effect, rhythm_multiplier)
        scale = intensity / effect.intensity if effect.intensity else 0.0

        # Intimate sub-state
        intimate.arousal = _unit(intimate.arousal + effect.arousal_gain * scale)
        setattr(intimate, effect.nerve, _unit(getattr(intimate, effect.nerve) + intensity * 0.1))
        intimate.inhibition = _unit(intimate.inhibition + effect.inhibition * scale)
        intimate.vulnerability = _unit(intimate.vulnerability + effect.vulnerability * scale)
        intimate.oxytocin_level = _unit(intimate.oxytocin_level + effect.oxytocin * scale)
        intimate.tumescence = _unit(intimate.tumescence + effect.arousal_gain * scale * 0.5)
        intimate.wetness = _unit(intimate.wetness + effect.arousal_gain * scale * 0.4)
        intimate.pelvic_floor_tension = _unit(intimate.pelvic_floor_tension + intimate.arousal * 0.02)
        intimate.habituation = _unit(intimate.habituation + self.config.habituation_gain * intensity)

        # Core nudges
        new.oxytocin = _unit(new.oxytocin + effect.oxytocin * scale)
        new.dopamine = _unit(new.dopamine + effect.dopamine * scale)
        new.cortisol = _unit(new.cortisol + effect.cortisol * scale)
        new.vulnerability = _unit(new.vulnerability + effect.vulnerability * scale)
        new.arousal = _unit(new.arousal + effect.arousal_gain * scale * 0.5)

        peak = self._update_climax(intimate, intensity)
        intimate.last_stimulus = stimulus
        new.intimate = intimate
        if peak:
            new = self.endorphin_rush(new)
            logger.info("Peak release; endorphin rush applied")
        logger.debug("stimulus %s intensity %.3f arousal %.3f",
                     stimulus.type.value, intensity, intimate.arousal)
        return SensoryResult(new, intensity, peak)

    def effective_intensity(
        self,
        intimate: IntimateState,
        stimulus: Stimulus,
        effect: StimulusEffect,
        rhythm_multiplier: float = 1.0,
    ) -> float:
        pressure = 0.5 if stimulus.pressure is None else float(np.clip(stimulus.pressure, 0.0, 1.0))
        velocity = 50.0 if stimulus.velocity is None else max(0.0, float(stimulus.velocity))
        value = (
            effect.intensity
            * (0.5 + pressure)
            * float(np.clip(velocity / 50.0, 0.5, 1.5))
            * intimate.sensitivity / 0.75
            * (1.0 - intimate.habituation)
            * (1.0 - intimate.inhibition * 0.5)
            * max(0.0, rhythm_multiplier)
        )
        return _unit(value)

    def relax_idle(self, intimate: IntimateState, dt_ms: float) -> IntimateState:
        """Recover habituation while idle; reset after idle_reset_ms."""
        cfg = self.config
        new = intimate.copy()
        new.idle_ms += max(0.0, dt_ms)
        if new.idle_ms >= cfg.idle_reset_ms and new.last_stimulus is not None:
            logger.debug("Intimate state idle for %.0fms; relaxing", new.idle_ms)
            idle = new.idle_ms
            new = relaxed(new)
            new.last_stimulus = None
            new.idle_ms = idle
        if dt_ms > 0 and cfg.habituation_tau_ms > 0:
            new.habituation *= float(np.exp(-dt_ms / cfg.habituation_tau_ms))
        return new

    def endorphin_rush(self, core: CoreState, magnitude: Optional[float] = None) -> CoreState:
        cfg = self.config
        new = core.copy()
        new.endorphin_rush = _unit(new.endorphin_rush + (cfg.rush_endorphin if magnitude is None else magnitude))
        new.erogenous_complex = _unit(new.erogenous_complex + cfg.rush_erogenous)
        new.subroutine_integrity = _unit(new.subroutine_integrity + cfg.rush_integrity)
        new.cortisol = _unit(new.cortisol + cfg.rush_cortisol)
        return new

    # ── Internal ─────────────────────────────────────────────────────────────

    def _track_continuity(self, intimate: IntimateState, stimulus: Stimulus) -> None:
        last = intimate.last_stimulus
        if last is not None and last.type == stimulus.type:
            intimate.stimulus_continuity += 1
        else:
            intimate.stimulus_continuity = 1
            intimate.habituation *= self.config.habituation_recovery

    def _update_climax(self, intimate: IntimateState, intensity: float) -> bool:
        cfg = self.config
        if intimate.arousal > cfg.climax_arousal_threshold:
            excess = intimate.arousal - cfg.climax_arousal_threshold
            intimate.climax_potential = _unit(
                intimate.climax_potential + excess * intensity * cfg.climax_gain * 10
            )
        if intimate.climax_potential < 1.0:
            return False
        intimate.climax_potential = 0.0
        intimate.arousal *= 0.3
        intimate.prolactin_surge = 0.8
        intimate.endorphin_release = 0.9
        intimate.pelvic_floor_tension = 0.15
        return True


_default_model = SensoryModel()


def apply_stimulus(
    intimate: IntimateState,
    stimulus: Stimulus,
    core: CoreState,
    rhythm_multiplier: float = 1.0,
) -> Tuple[IntimateState, CoreState]:
    """Functional form: returns the new sub-state and the new core state."""
    base = core.copy()
    base.intimate = intimate.copy()
    result = _default_model.apply(base, stimulus, rhythm_multiplier)
    return result.state.intimate, result.state
