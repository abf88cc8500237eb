# ═══════════════════════════════════════════════════════════════════════════════
# PART 2: STATE DYNAMICS
# Design: per-variable integrators + cross-variable feedback
# Implementation: Numerics
# ═══════════════════════════════════════════════════════════════════════════════

"""
Each tracked variable owns one DynamicModel. A step advances every model by
dt milliseconds and then applies the feedback rules between variables:

    1. HPA axis: high cortisol suppresses dopamine.
    2. Estradiol boosts dopamine.
    3. Estradiol buffers cortisol.
    4. Progesterone buffers cortisol (compounding on step 3).

Decay and recovery models are pure functions of (current, influence, dt).
CyclicVariation ignores dt and reads its clock; its start anchor is part of
the persisted model state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Optional

import numpy as np

from neurocore.core.state import (
    ComputedAction,
    CoreState,
    canonical_name,
    variable_range,
)

logger = logging.getLogger(__name__)

LN2 = float(np.log(2.0))

MsClock = Callable[[], float]


def wall_clock_ms() -> float:
    """Milliseconds since the epoch."""
    return time.time() * 1000.0


def _sanitize(current: float, baseline: float, dt_ms: float) -> tuple:
    """Guard against NaN inputs and negative elapsed time."""
    current = float(current)
    if not np.isfinite(current):
        logger.warning("Non-finite current value replaced with baseline %.3f", baseline)
        current = float(baseline)
    dt_ms = float(dt_ms)
    if not np.isfinite(dt_ms) or dt_ms < 0:
        logger.warning("Invalid dt_ms %r treated as 0", dt_ms)
        dt_ms = 0.0
    return current, dt_ms


# ── Configs ──────────────────────────────────────────────────────────────────


@dataclass
class ExponentialDecayConfig:
    """Exponential relaxation toward baseline with a fixed half-life."""
    baseline: float = 0.3
    half_life_ms: float = 7_200_000       # 2 hours


@dataclass
class TwoPhaseDecayConfig:
    """Fast decay above a threshold, slow decay below it."""
    baseline: float = 0.2
    fast_half_life_ms: float = 900_000    # 15 minutes
    slow_half_life_ms: float = 7_200_000  # 2 hours
    fast_threshold: float = 0.6


@dataclass
class SlowRecoveryConfig:
    """First-order recovery toward baseline, clamped to [min, max]."""
    baseline: float = 0.9
    recovery_tau_ms: float = 21_600_000   # 6 hours
    min_value: float = 0.0
    max_value: float = 1.0


@dataclass
class CyclicVariationConfig:
    """Sinusoid anchored at a start time."""
    period_ms: float = 2_419_200_000      # 28 days
    amplitude: float = 0.3
    offset: float = 0.4
    phase: float = 0.0


# ── Models ───────────────────────────────────────────────────────────────────


class DynamicModel:
    """Common contract for per-variable integrators."""

    kind = "base"

    def compute(self, current: float, influence: float, dt_ms: float) -> float:
        raise NotImplementedError

    def reset(self) -> None:
        pass

    def get_parameters(self) -> dict:
        raise NotImplementedError

    def get_state(self) -> dict:
        return {}

    def restore(self, state: dict) -> None:
        pass


class ExponentialDecay(DynamicModel):
    """new = baseline + (current - baseline) * exp(-dt / tau) + influence"""

    kind = "exponential_decay"

    def __init__(self, config: Optional[ExponentialDecayConfig] = None):
        self.config = config or ExponentialDecayConfig()
        if self.config.half_life_ms <= 0:
            logger.warning(
                "Non-positive half-life %r: model snaps to baseline",
                self.config.half_life_ms,
            )

    @property
    def tau_ms(self) -> float:
        return self.config.half_life_ms / LN2

    def compute(self, current: float, influence: float, dt_ms: float) -> float:
        cfg = self.config
        current, dt_ms = _sanitize(current, cfg.baseline, dt_ms)
        if dt_ms == 0:
            return current + influence
        if cfg.half_life_ms <= 0:
            return cfg.baseline + influence
        decay = float(np.exp(-dt_ms / self.tau_ms))
        return cfg.baseline + (current - cfg.baseline) * decay + influence

    def get_parameters(self) -> dict:
        return {
            "type": self.kind,
            "baseline": self.config.baseline,
            "half_life_ms": self.config.half_life_ms,
            "half_life_hours": self.config.half_life_ms / 3_600_000,
        }


class TwoPhaseDecay(DynamicModel):
    """
    Exponential decay whose half-life depends on the current value.

    Above fast_threshold the fast half-life applies; the phase is chosen once
    per step from the pre-step value.
    """

    kind = "two_phase_decay"

    def __init__(self, config: Optional[TwoPhaseDecayConfig] = None):
        self.config = config or TwoPhaseDecayConfig()
        cfg = self.config
        if cfg.fast_half_life_ms <= 0 or cfg.slow_half_life_ms <= 0:
            logger.warning("Non-positive half-life in two-phase decay: snaps to baseline")

    def compute(self, current: float, influence: float, dt_ms: float) -> float:
        cfg = self.config
        current, dt_ms = _sanitize(current, cfg.baseline, dt_ms)
        if dt_ms == 0:
            return current + influence
        half_life = cfg.fast_half_life_ms if current > cfg.fast_threshold else cfg.slow_half_life_ms
        if half_life <= 0:
            return cfg.baseline + influence
        decay = float(np.exp(-dt_ms * LN2 / half_life))
        return cfg.baseline + (current - cfg.baseline) * decay + influence

    def get_parameters(self) -> dict:
        return {"type": self.kind, **asdict(self.config)}


class SlowRecovery(DynamicModel):
    """new = current + (baseline - current) * (1 - exp(-dt / tau)) + influence"""

    kind = "slow_recovery"

    def __init__(self, config: Optional[SlowRecoveryConfig] = None):
        self.config = config or SlowRecoveryConfig()
        if self.config.recovery_tau_ms <= 0:
            logger.warning(
                "Non-positive recovery tau %r: model snaps to baseline",
                self.config.recovery_tau_ms,
            )
        self.current_value = self.config.baseline

    def compute(self, current: float, influence: float, dt_ms: float) -> float:
        cfg = self.config
        current, dt_ms = _sanitize(current, cfg.baseline, dt_ms)
        if dt_ms == 0:
            new = current + influence
        elif cfg.recovery_tau_ms <= 0:
            new = cfg.baseline + influence
        else:
            recovery = 1.0 - float(np.exp(-dt_ms / cfg.recovery_tau_ms))
            new = current + (cfg.baseline - current) * recovery + influence
        new = float(np.clip(new, cfg.min_value, cfg.max_value))
        self.current_value = new
        return new

    def reset(self) -> None:
        self.current_value = self.config.baseline

    def get_parameters(self) -> dict:
        return {
            "type": self.kind,
            **asdict(self.config),
            "recovery_tau_hours": self.config.recovery_tau_ms / 3_600_000,
            "current_value": self.current_value,
        }

    def get_state(self) -> dict:
        return {"current_value": self.current_value}

    def restore(self, state: dict) -> None:
        self.current_value = float(state.get("current_value", self.config.baseline))


class CyclicVariation(DynamicModel):
    """
    value = offset + amplitude * sin(2*pi * elapsed / period + phase) + influence

    elapsed is measured on the injected clock from start_time_ms. current and
    dt are ignored.
    """

    kind = "cyclic_variation"

    def __init__(
        self,
        config: Optional[CyclicVariationConfig] = None,
        clock: Optional[MsClock] = None,
        start_time_ms: Optional[float] = None,
    ):
        self.config = config or CyclicVariationConfig()
        self.clock = clock or wall_clock_ms
        if self.config.period_ms <= 0:
            logger.warning(
                "Non-positive period %r: cyclic model held at offset",
                self.config.period_ms,
            )
        self.start_time_ms = float(self.clock() if start_time_ms is None else start_time_ms)

    @property
    def elapsed_ms(self) -> float:
        return self.clock() - self.start_time_ms

    def value_at(self, elapsed_ms: float) -> float:
        cfg = self.config
        if cfg.period_ms <= 0:
            return cfg.offset
        angle = 2.0 * np.pi * elapsed_ms / cfg.period_ms + cfg.phase
        return float(cfg.offset + cfg.amplitude * np.sin(angle))

    def compute(self, current: float, influence: float, dt_ms: float) -> float:
        return self.value_at(self.elapsed_ms) + influence

    def reset(self) -> None:
        self.start_time_ms = float(self.clock())

    def get_parameters(self) -> dict:
        return {
            "type": self.kind,
            **asdict(self.config),
            "period_days": self.config.period_ms / 86_400_000,
            "start_time_ms": self.start_time_ms,
        }

    def get_state(self) -> dict:
        return {"start_time_ms": self.start_time_ms}

    def restore(self, state: dict) -> None:
        if "start_time_ms" in state:
            self.start_time_ms = float(state["start_time_ms"])


# ── StateDynamics ────────────────────────────────────────────────────────────


@dataclass
class StateDynamicsConfig:
    """Feedback rule constants and the default model set."""
    hpa_cortisol_threshold: float = 0.7
    hpa_dopamine_suppression: float = 0.6

    estradiol_reference: float = 0.4
    estradiol_dopamine_boost: float = 0.3
    estradiol_cortisol_buffer: float = 0.25

    progesterone_reference: float = 0.2
    progesterone_cortisol_buffer: float = 0.2

    dopamine: ExponentialDecayConfig = field(default_factory=ExponentialDecayConfig)
    cortisol: TwoPhaseDecayConfig = field(default_factory=TwoPhaseDecayConfig)
    subroutine_integrity: SlowRecoveryConfig = field(default_factory=SlowRecoveryConfig)
    oxytocin: SlowRecoveryConfig = field(
        default_factory=lambda: SlowRecoveryConfig(baseline=0.4, recovery_tau_ms=3_600_000)
    )
    estradiol: CyclicVariationConfig = field(default_factory=CyclicVariationConfig)
    progesterone: CyclicVariationConfig = field(
        default_factory=lambda: CyclicVariationConfig(amplitude=0.35, offset=0.2, phase=np.pi / 2)
    )


class StateDynamics:
    """
    Advances every tracked variable by one step.

    The model map is extensible through set_model(); names are validated
    against the CoreState schema.
    """

    def __init__(
        self,
        config: Optional[StateDynamicsConfig] = None,
        clock: Optional[MsClock] = None,
    ):
        self.config = config or StateDynamicsConfig()
        self.clock = clock or wall_clock_ms
        cfg = self.config

        self.models: Dict[str, DynamicModel] = {
            "dopamine": ExponentialDecay(cfg.dopamine),
            "cortisol": TwoPhaseDecay(cfg.cortisol),
            "subroutine_integrity": SlowRecovery(cfg.subroutine_integrity),
            "oxytocin": SlowRecovery(cfg.oxytocin),
            "estradiol": CyclicVariation(cfg.estradiol, clock=self.clock),
            "progesterone": CyclicVariation(cfg.progesterone, clock=self.clock),
        }
        self._step_count = 0

    # ── Public Methods ───────────────────────────────────────────────────────

    def step(
        self,
        state: CoreState,
        action: Optional[ComputedAction] = None,
        dt_ms: float = 0.0,
    ) -> CoreState:
        """
        Return a new state advanced by dt_ms.

        Influence on untracked variables is ignored. The input state is not
        modified.
        """
        influence = action.influence if action is not None else {}
        new = state.copy()

        for name, model in self.models.items():
            value = model.compute(getattr(state, name), influence.get(name, 0.0), dt_ms)
            low, high = variable_range(name)
            setattr(new, name, float(np.clip(value, low, high)))

        # Feedback is a rate process; a zero-length step leaves it alone.
        if dt_ms > 0:
            new = self.apply_feedback(new)
        self._step_count += 1
        logger.debug(
            "step %d dt=%.0fms dopamine=%.3f cortisol=%.3f",
            self._step_count, dt_ms, new.dopamine, new.cortisol,
        )
        return new

    def set_model(self, name: str, model: DynamicModel) -> None:
        """Track (or replace the model of) a variable."""
        self.models[canonical_name(name)] = model

    def remove_model(self, name: str) -> bool:
        return self.models.pop(canonical_name(name), None) is not None

    def get_model(self, name: str) -> Optional[DynamicModel]:
        return self.models.get(canonical_name(name))

    def get_parameters(self) -> Dict[str, dict]:
        return {name: model.get_parameters() for name, model in self.models.items()}

    def reset(self) -> None:
        """Reset all models (re-anchors cyclic models at the current clock)."""
        for model in self.models.values():
            model.reset()
        self._step_count = 0

    def get_state(self) -> dict:
        return {
            "step_count": self._step_count,
            "models": {name: model.get_state() for name, model in self.models.items()},
        }

    def restore(self, state: dict) -> None:
        self._step_count = int(state.get("step_count", 0))
        for name, model_state in state.get("models", {}).items():
            if name in self.models:
                self.models[name].restore(model_state)

    @property
    def cycle_anchor_ms(self) -> Optional[float]:
        """Start anchor of the estradiol cycle model, if tracked as cyclic."""
        model = self.models.get("estradiol")
        if isinstance(model, CyclicVariation):
            return model.start_time_ms
        return None

    def apply_feedback(self, state: CoreState) -> CoreState:
        """Cross-variable rules, applied in order on a copy of state."""
        new = state.copy()
        self._hpa_feedback(new)
        self._hormonal_modulation(new)
        return new

    # ── Internal ─────────────────────────────────────────────────────────────

    def _hpa_feedback(self, s: CoreState) -> None:
        cfg = self.config

        # HPA axis: dopamine suppression under high cortisol
        if s.cortisol > cfg.hpa_cortisol_threshold:
            excess = s.cortisol - cfg.hpa_cortisol_threshold
            s.dopamine *= 1.0 - excess * cfg.hpa_dopamine_suppression
        s.dopamine = float(np.clip(s.dopamine, 0.0, 1.0))

    def _hormonal_modulation(self, s: CoreState) -> None:
        cfg = self.config
        estradiol_excess = max(0.0, s.estradiol - cfg.estradiol_reference)
        s.dopamine = min(1.0, s.dopamine * (1.0 + estradiol_excess * cfg.estradiol_dopamine_boost))
        s.cortisol *= 1.0 - estradiol_excess * cfg.estradiol_cortisol_buffer

        # Compounds on the estradiol-buffered value
        progesterone_excess = max(0.0, s.progesterone - cfg.progesterone_reference)
        s.cortisol *= 1.0 - progesterone_excess * cfg.progesterone_cortisol_buffer

        s.dopamine = float(np.clip(s.dopamine, 0.0, 1.0))
        s.cortisol = float(np.clip(s.cortisol, 0.0, 1.0))
