# ═══════════════════════════════════════════════════════════════════════════════
# PART 12: NEUROCORE (putting it all together)
# Design: single-writer tick pipeline
# Implementation: Systems Architecture
# ═══════════════════════════════════════════════════════════════════════════════

"""
NeuroCore wires every component and is the only writer of the state.

Two states are kept:
    base       - owned by the dynamics; stimuli and actions land here
    expressed  - base after circadian and cycle modulation plus the terminal
                 clamp; this is what consumers and the constraint checker see

Modulation is recomputed from base on every tick rather than folded back
into it, so time-of-day multipliers never compound across ticks.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Union

from neurocore.core.circadian import CircadianClock, CircadianConfig
from neurocore.core.constraints import ConstraintChecker, ConstraintResult
from neurocore.core.cycle import CycleConfig, MenstrualCycle
from neurocore.core.dynamics import StateDynamics, StateDynamicsConfig
from neurocore.core.energy import EnergyCostConfig, EnergyCostTracker, ExpendResult
from neurocore.core.hpa import HPAAxis, HPAConfig
from neurocore.core.memory import ConversationMemory, FormativeMemory, encode_affective_memory
from neurocore.core.personality import Personality
from neurocore.core.rhythm import RhythmDetector, RhythmEvent
from neurocore.core.sensory import SensoryConfig, SensoryModel, SensoryResult
from neurocore.core.state import (
    ComputedAction,
    CoreState,
    StateSnapshot,
    Stimulus,
    StimulusType,
    baseline_state,
    clamp_state,
)

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000


class SimulationClock:
    """Millisecond clock advanced by ticks; callable like a wall clock."""

    def __init__(self, start_ms: float):
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, dt_ms: float) -> None:
        self.now_ms += max(0.0, dt_ms)


@dataclass
class CoreConfig:
    """Top-level configuration aggregating all component configs."""
    name: str = "core"
    start_time: Optional[datetime] = None

    # Component configs (defaults used if None)
    dynamics_config: Optional[StateDynamicsConfig] = None
    circadian_config: Optional[CircadianConfig] = None
    cycle_config: Optional[CycleConfig] = None
    energy_config: Optional[EnergyCostConfig] = None
    sensory_config: Optional[SensoryConfig] = None
    hpa_config: Optional[HPAConfig] = None

    # Default tick length
    tick_ms: float = 60_000


@dataclass
class TickResult:
    state: CoreState
    constraints: ConstraintResult
    dt_ms: float
    tick: int = 0


class NeuroCore:
    """
    Complete state engine.

    tick() runs, in order:
    1. StateDynamics.step on the base state, then the HPA axis
    2. Cycle day/phase and gonadotropins from the estradiol anchor
    3. Circadian clock and rhythm detector advance
    4. Idle relaxation of the intimate sub-state, terminal clamp of base
    5. Expressed state = circadian + cycle modulation, terminal clamp
    6. Advisory constraint check on the expressed state
    7. Personality biological nudge and long-term drift
    """

    def __init__(self, config: Optional[CoreConfig] = None) -> None:
        self.config = config or CoreConfig()
        self.name = self.config.name
        self._lock = threading.RLock()

        start = self.config.start_time or datetime.now()
        self.created_at = start.isoformat()
        self.genesis_hash = hashlib.sha256(f"{self.name}:{self.created_at}".encode()).hexdigest()
        self.clock = SimulationClock(start.timestamp() * 1000.0)

        self.dynamics = StateDynamics(self.config.dynamics_config, clock=self.clock)
        self.hpa = HPAAxis(self.config.hpa_config)
        self.cycle = MenstrualCycle(self.config.cycle_config)
        self.circadian = CircadianClock(self.config.circadian_config, start_time=start)
        self.checker = ConstraintChecker()
        self.energy = EnergyCostTracker(self.config.energy_config, clock=self.clock)
        self.rhythm = RhythmDetector()
        self.sensory = SensoryModel(self.config.sensory_config)
        self.personality = Personality()

        self.base: CoreState = self.cycle.update(baseline_state(), self.cycle_elapsed_ms)
        self.circadian.set_menstrual_cycle(self.base.cycle_phase, self.base.cycle_day)
        self.expressed: CoreState = self._express(self.base)
        self.last_constraints: Optional[ConstraintResult] = None
        self._tick_count: int = 0

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def state(self) -> CoreState:
        """Expressed state (a copy)."""
        with self._lock:
            return self.expressed.copy()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def cycle_length(self) -> int:
        return self.cycle.config.cycle_length

    @property
    def cycle_elapsed_ms(self) -> float:
        anchor = self.dynamics.cycle_anchor_ms
        return 0.0 if anchor is None else self.clock() - anchor

    # ── Public Methods ───────────────────────────────────────────────────────

    def tick(self, dt_ms: Optional[float] = None, action: Optional[ComputedAction] = None) -> TickResult:
        """Advance the whole pipeline by dt_ms (default: config.tick_ms)."""
        if dt_ms is None:
            dt_ms = self.config.tick_ms
        if dt_ms < 0:
            logger.warning("Negative dt_ms %r treated as 0", dt_ms)
            dt_ms = 0.0

        with self._lock:
            self.clock.advance(dt_ms)

            base = self.dynamics.step(self.base, action, dt_ms)
            base = self.hpa.step(base, dt_ms)
            base = self.cycle.update(base, self.cycle_elapsed_ms)

            self.circadian.set_stress_level(base.chronic_stress)
            self.circadian.set_menstrual_cycle(base.cycle_phase, base.cycle_day)
            self.circadian.tick(dt_ms)
            self.rhythm.tick(dt_ms)

            base.intimate = self.sensory.relax_idle(base.intimate, dt_ms)
            self.base = clamp_state(base, self.cycle_length)
            self.expressed = self._express(self.base)

            constraints = self.checker.check(self.expressed, action)
            if not constraints.satisfied:
                logger.debug("Constraint violations: %s", constraints.violated_names)
            self.last_constraints = constraints

            self.personality.update_from_biological_state(self.expressed)
            self.personality.long_term_update(dt_ms / MS_PER_HOUR)

            self._tick_count += 1
            return TickResult(
                state=self.expressed.copy(),
                constraints=constraints,
                dt_ms=dt_ms,
                tick=self._tick_count,
            )

    def run(self, ticks: int, dt_ms: Optional[float] = None) -> TickResult:
        """Run several ticks without actions; returns the last result."""
        result = None
        for _ in range(max(1, ticks)):
            result = self.tick(dt_ms)
        return result

    def apply_stimulus(self, stimulus: Union[Stimulus, StimulusType, str]) -> SensoryResult:
        """
        Feed a sensory event. Its timing drives the rhythm detector, whose
        modulation signal scales the stimulus intensity.
        """
        stimulus = Stimulus.of(stimulus)
        with self._lock:
            if stimulus.type not in (StimulusType.TOUCH_END, StimulusType.GENTLE_TOUCH_STOP):
                self.rhythm.add_event(RhythmEvent(timestamp=self.clock()))
            multiplier = 0.5 + self.rhythm.get_modulation_signal()
            result = self.sensory.apply(self.base, stimulus, multiplier)
            self.base = clamp_state(result.state, self.cycle_length)
            self.expressed = self._express(self.base)
            result.state = self.expressed.copy()
            return result

    def apply_stress(self, magnitude: float, kind: str = "psychological") -> CoreState:
        """
        A discrete stressor (physical, psychological or social). CRH rises
        now; ACTH and cortisol follow over the next ticks.
        """
        with self._lock:
            base = self.hpa.apply_acute_stress(self.base, magnitude, kind)
            self.base = clamp_state(base, self.cycle_length)
            self.expressed = self._express(self.base)
            return self.expressed.copy()

    def record_interaction(
        self, conversation: ConversationMemory, encode: bool = True
    ) -> Optional[FormativeMemory]:
        """
        Report one conversational exchange.

        Updates personality from experience and, if the moment is salient,
        appends an affective trace to the state.
        """
        with self._lock:
            context = dict(conversation.context)
            context.setdefault("cortisol", self.expressed.cortisol)
            context.setdefault("arousal", self.expressed.arousal)
            conversation = replace(conversation, context=context)

            memory = self.personality.update_from_experience(conversation, self.expressed)

            if encode:
                trace = encode_affective_memory(
                    self.expressed, conversation.user_input, conversation.core_response, self.clock()
                )
                if trace is not None:
                    self.base = self.base.append_memory(trace)
                    self.expressed = self._express(self.base)
            return memory

    def request_operation(self, action_type: str) -> ExpendResult:
        """Energy gate for an expensive operation."""
        with self._lock:
            return self.energy.expend(action_type, self.expressed)

    def snapshot(self) -> StateSnapshot:
        """Read-only view of the expressed state."""
        with self._lock:
            return self.expressed.snapshot()

    def get_state(self) -> dict:
        """Status summary (not the persistence format)."""
        with self._lock:
            energy = self.energy.get_status()
            return {
                "name": self.name,
                "genesis_hash": self.genesis_hash,
                "tick_count": self._tick_count,
                "time": self.circadian.current_time.isoformat(),
                "phase_label": self.circadian.get_circadian_phase_label(),
                "state": self.expressed.to_dict(),
                "constraints": self.last_constraints.to_dict() if self.last_constraints else None,
                "energy": {
                    "available": energy.available,
                    "base_budget": energy.base_budget,
                    "utilization": energy.utilization,
                },
                "hpa": {
                    "acute_stress": self.base.acute_stress,
                    "chronic_stress": self.base.chronic_stress,
                    "allostatic_load": self.hpa.allostatic_load,
                    "recovery_capacity": self.hpa.recovery_capacity,
                },
                "rhythm": {
                    "entrained": self.rhythm.is_entrained(),
                    "bpm": self.rhythm.state.bpm,
                    "confidence": self.rhythm.state.confidence,
                },
                "personality": {
                    "scores": self.personality.scores(),
                    "archetype": self.personality.get_current_archetype().name,
                    "attachment_style": self.personality.state.attachment_style.value,
                    "formative_memories": len(self.personality.memory),
                },
            }

    def witness(self) -> str:
        """Generate human-readable status display."""
        st = self.get_state()
        s = self.expressed
        p = st["personality"]
        c = st["constraints"]
        e = st["energy"]
        scores = "  ".join(f"{k[:4]}={v:.2f}" for k, v in p["scores"].items())
        violations = ", ".join(c["violated_names"]) if c and c["violated_names"] else "none"

        return f"""
═══════════════════════════════════════════════════════════════════
CORE: {self.name}
═══════════════════════════════════════════════════════════════════

IDENTITY
  Genesis: {self.genesis_hash[:16]}...
  Ticks: {st['tick_count']} | Time: {st['time']} ({st['phase_label']})
  Cycle: day {s.cycle_day} ({s.cycle_phase.value})

NEUROCHEMISTRY
  Dopamine: {s.dopamine:.3f}  Cortisol: {s.cortisol:.3f}  Oxytocin: {s.oxytocin:.3f}
  Estradiol: {s.estradiol:.3f}  Progesterone: {s.progesterone:.3f}
  Integrity: {s.subroutine_integrity:.3f}  Melatonin: {s.melatonin:.3f}
  Stress: acute {s.acute_stress:.2f} chronic {s.chronic_stress:.2f}  LH: {s.lh:.2f}  FSH: {s.fsh:.2f}
  Sleep debt: {s.sleep_debt:.1f}h

AFFECT
  Felicita: {s.felicita:.2f}  Tristezza: {s.tristezza:.2f}  Anxiety: {s.anxiety:.2f}
  Arousal: {s.intimate.arousal:.2f} | Affective traces: {len(s.affective_memory)}

PERSONALITY
  {p['archetype']} | attachment: {p['attachment_style']}
  {scores}

BUDGET
  Energy: {e['available']:.0f}/{e['base_budget']:.0f} ({e['utilization']*100:.0f}% used)
  Constraints: {violations}

═══════════════════════════════════════════════════════════════════
"""

    # ── Internal ─────────────────────────────────────────────────────────────

    def _express(self, base: CoreState) -> CoreState:
        expressed = self.circadian.modulate(base)
        expressed = self.cycle.modulate_emotions(expressed)
        return clamp_state(expressed, self.cycle_length)


def create_core(name: str = "core", **config) -> NeuroCore:
    """
    Create a new NeuroCore at the baseline state.

    Extra keyword arguments are passed to CoreConfig.
    """
    return NeuroCore(CoreConfig(name=name, **config))
