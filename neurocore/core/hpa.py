# ═══════════════════════════════════════════════════════════════════════════════
# PART 14: HPA AXIS
# Design: CRH -> ACTH -> cortisol cascade with receptor feedback
# Implementation: Numerics
# ═══════════════════════════════════════════════════════════════════════════════

"""
The stress axis sits between the cortisol integrator and everything that
reads stress downstream (circadian robustness, personality drift).

Per step:
    1. Lagged release: a stressor's CRH surge reaches ACTH over ~1.5 min
       and cortisol over ~7 min.
    2. Acute stress follows excess cortisol and decays with recovery.
    3. Chronic stress integrates acute stress over days; sustained load
       accumulates allostatic load, which downregulates GR.
    4. GR/MR occupancy are binding curves of cortisol. MR saturates near
       baseline, GR only under stress.
    5. CRH and ACTH relax toward setpoints raised by chronic stress and
       lowered by GR feedback; AVP takes over part of the drive.

Like the cross-variable feedback in dynamics, this is a rate process: a
zero-length step changes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from neurocore.core.state import CoreState

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000
LN2 = float(np.log(2.0))
ALLOSTATIC_SATURATION_HOURS = 4 * 7 * 24

STRESS_KIND_MULTIPLIERS = {
    "physical": 1.0,
    "psychological": 1.15,
    "social": 1.15,
}


@dataclass
class HPAConfig:
    """Setpoints, half-lives and gains of the stress axis."""
    # Resting setpoints (match the baseline state)
    cortisol_baseline: float = 0.2
    crh_baseline: float = 0.08
    acth_baseline: float = 0.15
    avp_baseline: float = 0.02
    chronic_floor: float = 0.1

    # Half-lives of the releasing hormones
    crh_half_life_h: float = 0.1
    acth_half_life_h: float = 0.3

    # Cascade lags
    crh_to_acth_lag_min: float = 1.5
    acth_to_cortisol_lag_min: float = 7.0

    # Stress time constants
    acute_tau_h: float = 0.5
    chronic_rise_tau_h: float = 72.0
    chronic_recovery_tau_h: float = 168.0

    # Receptor dissociation constants (occupancy = c / (c + kd))
    gr_kd: float = 1.1333
    mr_kd: float = 0.3
    gr_downregulation: float = 0.5

    # Gains
    feedback_gain: float = 2.0
    chronic_drive: float = 1.5
    avp_gain: float = 0.3
    surge_gain: float = 0.8


class HPAAxis:
    """
    Stress-axis model stepped once per tick on the base state.

    Internal state (lag buffers, allostatic load, sensitization) is kept
    here and persisted through get_state/restore; the hormone levels it
    produces live on the CoreState.
    """

    def __init__(self, config: Optional[HPAConfig] = None):
        self.config = config or HPAConfig()
        self.crh_to_acth_lag: float = 0.0
        self.acth_to_cortisol_lag: float = 0.0
        self.allostatic_load: float = 0.0
        self.sensitization: float = 0.0
        self.recovery_capacity: float = 0.95
        self.hours_since_stressor: Optional[float] = None

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def gr_baseline(self) -> float:
        return self.gr_occupancy(self.config.cortisol_baseline)

    # ── Public Methods ───────────────────────────────────────────────────────

    def gr_occupancy(self, cortisol: float) -> float:
        cfg = self.config
        occupancy = cortisol / (cortisol + cfg.gr_kd)
        return float(occupancy * (1.0 - cfg.gr_downregulation * self.allostatic_load))

    def mr_occupancy(self, cortisol: float) -> float:
        return float(cortisol / (cortisol + self.config.mr_kd))

    def apply_acute_stress(
        self, state: CoreState, magnitude: float, kind: str = "psychological"
    ) -> CoreState:
        """
        A discrete stressor: immediate CRH surge, with ACTH and cortisol
        following through the lag buffers on later steps.
        """
        cfg = self.config
        magnitude = float(np.clip(magnitude, 0.0, 1.0))
        multiplier = STRESS_KIND_MULTIPLIERS.get(kind, 1.0)

        if self.hours_since_stressor is not None and self.hours_since_stressor < 1.0:
            self.sensitization = float(np.clip(self.sensitization + 0.05 * multiplier, 0.0, 1.0))

        sympathetic = 0.5 + state.norepinephrine
        amygdala = 0.5 + max(state.paura, state.rabbia)
        surge = magnitude * sympathetic * amygdala * cfg.surge_gain * multiplier
        surge *= 1.0 + self.sensitization

        self.crh_to_acth_lag += surge * 0.9
        self.acth_to_cortisol_lag += surge * 0.7
        self.hours_since_stressor = 0.0

        s = state.copy()
        s.crh = float(np.clip(s.crh + surge, 0.0, 1.0))
        s.acute_stress = float(np.clip(max(s.acute_stress, magnitude), 0.0, 1.0))
        s.norepinephrine = float(np.clip(s.norepinephrine + magnitude * 0.7, 0.0, 1.0))
        logger.info("Acute %s stressor %.2f: CRH surge %.3f", kind, magnitude, surge)
        return s

    def step(self, state: CoreState, dt_ms: float) -> CoreState:
        """Return a copy of state with the stress axis advanced by dt_ms."""
        s = state.copy()
        if dt_ms <= 0:
            return s
        cfg = self.config
        dt_h = dt_ms / MS_PER_HOUR
        dt_min = dt_h * 60.0

        # 1. Lagged cascade
        acth_release = self.crh_to_acth_lag * (1.0 - np.exp(-dt_min / cfg.crh_to_acth_lag_min))
        cortisol_release = self.acth_to_cortisol_lag * (
            1.0 - np.exp(-dt_min / cfg.acth_to_cortisol_lag_min)
        )
        self.crh_to_acth_lag -= acth_release
        self.acth_to_cortisol_lag -= cortisol_release
        s.cortisol = float(np.clip(s.cortisol + cortisol_release, 0.0, 1.0))

        # 2. Acute stress
        excess = float(np.clip(
            (s.cortisol - cfg.cortisol_baseline) / (1.0 - cfg.cortisol_baseline), 0.0, 1.0
        ))
        acute_tau = cfg.acute_tau_h / max(0.2, self.recovery_capacity / 0.95)
        s.acute_stress = float(max(s.acute_stress * np.exp(-dt_h / acute_tau), excess))

        # 3. Chronic stress and allostatic load
        target = cfg.chronic_floor + (1.0 - cfg.chronic_floor) * s.acute_stress
        tau = cfg.chronic_rise_tau_h if target > s.chronic_stress else cfg.chronic_recovery_tau_h
        s.chronic_stress = float(
            s.chronic_stress + (target - s.chronic_stress) * (1.0 - np.exp(-dt_h / tau))
        )
        load = max(0.0, s.chronic_stress - cfg.chronic_floor)
        self.allostatic_load = float(np.clip(
            self.allostatic_load + load * dt_h / ALLOSTATIC_SATURATION_HOURS, 0.0, 1.0
        ))
        self.recovery_capacity = 0.95 * (1.0 - 0.6 * self.allostatic_load)

        # 4. Receptors
        s.gr_occupancy = self.gr_occupancy(s.cortisol)
        s.mr_occupancy = self.mr_occupancy(s.cortisol)

        # 5. Releasing hormones
        feedback = max(0.0, 1.0 - cfg.feedback_gain * (s.gr_occupancy - self.gr_baseline))
        drive = 1.0 + cfg.chronic_drive * (s.chronic_stress - cfg.chronic_floor)
        crh_target = float(np.clip(cfg.crh_baseline * drive * feedback, 0.0, 1.0))
        acth_target = float(np.clip(cfg.acth_baseline * drive * feedback, 0.0, 1.0))
        s.crh = _relax(s.crh, crh_target, dt_h, cfg.crh_half_life_h)
        s.acth = float(np.clip(
            _relax(s.acth, acth_target, dt_h, cfg.acth_half_life_h) + acth_release, 0.0, 1.0
        ))
        s.avp = float(np.clip(
            cfg.avp_baseline + cfg.avp_gain * (
                max(0.0, s.chronic_stress - cfg.chronic_floor)
                + max(0.0, s.crh - cfg.crh_baseline)
            ),
            0.0, 1.0,
        ))

        if self.hours_since_stressor is not None:
            self.hours_since_stressor += dt_h
            if self.hours_since_stressor > 1.0:
                self.sensitization *= float(np.exp(-dt_h / 24.0))
        return s

    def get_state(self) -> dict:
        return {
            "crh_to_acth_lag": self.crh_to_acth_lag,
            "acth_to_cortisol_lag": self.acth_to_cortisol_lag,
            "allostatic_load": self.allostatic_load,
            "sensitization": self.sensitization,
            "recovery_capacity": self.recovery_capacity,
            "hours_since_stressor": self.hours_since_stressor,
        }

    def restore(self, data: dict) -> None:
        self.crh_to_acth_lag = float(data.get("crh_to_acth_lag", 0.0))
        self.acth_to_cortisol_lag = float(data.get("acth_to_cortisol_lag", 0.0))
        self.allostatic_load = float(data.get("allostatic_load", 0.0))
        self.sensitization = float(data.get("sensitization", 0.0))
        self.recovery_capacity = float(data.get("recovery_capacity", 0.95))
        hours = data.get("hours_since_stressor")
        self.hours_since_stressor = None if hours is None else float(hours)


def _relax(current: float, target: float, dt_h: float, half_life_h: float) -> float:
    return float(target + (current - target) * np.exp(-LN2 * dt_h / half_life_h))
