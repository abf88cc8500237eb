# ═══════════════════════════════════════════════════════════════════════════════
# PART 1: CORE STATE
# Design: shared neurochemical record + closed variable enumeration
# Implementation: State Management
# ═══════════════════════════════════════════════════════════════════════════════

"""
The CoreState is the one record every subsystem reads and writes. It is owned
by the tick driver; components receive it, copy it, and hand back a new one.

Variable names form a closed set (CoreState.NUMERIC_FIELDS). A typo in an
influence map fails when the action is built, not silently at step time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


class UnknownVariableError(ValueError):
    """Raised when a variable name is not part of the CoreState schema."""
    pass


class CyclePhase(Enum):
    """Menstrual cycle phases."""
    MENSTRUAL = "menstrual"
    FOLLICULAR = "follicular"
    OVULATION = "ovulation"
    LUTEAL_EARLY = "luteal_early"
    LUTEAL_LATE = "luteal_late"


class StimulusType(Enum):
    """Discrete sensory events accepted by the sensory model."""
    TOUCH_START = "touch_start"
    TOUCH_MOVE = "touch_move"
    TOUCH_END = "touch_end"
    GENTLE_TOUCH_START = "gentle_touch_start"
    GENTLE_TOUCH_STOP = "gentle_touch_stop"
    FIRM_TOUCH = "firm_touch"
    WHISPER = "whisper"
    TEASE = "tease"
    VULNERABILITY_TRIGGER = "vulnerability_trigger"


class MemoryType(Enum):
    """Classification of an affective memory trace."""
    SHORT_TERM = "short_term"
    LONG_TERM_EPISODIC = "long_term_episodic"
    IMPLICIT = "implicit"
    PROCEDURAL = "procedural"
    FLASHBULB = "flashbulb"


# Legacy spellings still produced by older sessions and callers.
ALIASES: Dict[str, str] = {
    "subroutineIntegrity": "subroutine_integrity",
    "estrogen": "estradiol",
    "endorphinRush": "endorphin_rush",
    "substanceP": "substance_p",
    "erogenousComplex": "erogenous_complex",
    "loyaltyConstruct": "loyalty_construct",
}

AFFECTIVE_MEMORY_CAPACITY = 200
MAX_SLEEP_DEBT_HOURS = 48.0
DEFAULT_CYCLE_LENGTH = 28


# ── Nested records ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Stimulus:
    """A typed discrete sensory event."""
    type: StimulusType
    pressure: Optional[float] = None    # 0-1
    velocity: Optional[float] = None    # arbitrary units, 50 = typical

    @classmethod
    def of(cls, value: Union["Stimulus", StimulusType, str]) -> "Stimulus":
        """Coerce a bare type (or its string literal) into a Stimulus."""
        if isinstance(value, Stimulus):
            return value
        return cls(type=StimulusType(value), pressure=0.5, velocity=50.0)

    def to_dict(self) -> dict:
        return {"type": self.type.value, "pressure": self.pressure, "velocity": self.velocity}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Stimulus":
        return cls(
            type=StimulusType(d["type"]),
            pressure=d.get("pressure"),
            velocity=d.get("velocity"),
        )


@dataclass
class IntimateState:
    """
    Sensory-arousal sub-state.

    Mutated by Stimulus events between resets; relaxed to near-baseline on
    touch_end or after a long idle period.
    """
    arousal: float = 0.0
    sensitivity: float = 0.75
    inhibition: float = 0.15
    climax_potential: float = 0.0
    vulnerability: float = 0.1

    tumescence: float = 0.05
    wetness: float = 0.08

    # Nerve activation
    surface_nerve: float = 0.15
    deep_nerve: float = 0.15
    visceral_nerve: float = 0.1

    pelvic_floor_tension: float = 0.15

    # Hormonal sub-states
    prolactin_surge: float = 0.0
    endorphin_release: float = 0.0
    oxytocin_level: float = 0.15

    habituation: float = 0.0
    last_stimulus: Optional[Stimulus] = None
    stimulus_continuity: int = 0
    idle_ms: float = 0.0

    @classmethod
    def numeric_fields(cls) -> Tuple[str, ...]:
        return tuple(
            f.name for f in fields(cls)
            if f.name not in ("last_stimulus", "stimulus_continuity", "idle_ms")
        )

    def copy(self) -> "IntimateState":
        return replace(self)

    def to_dict(self) -> dict:
        d = {name: getattr(self, name) for name in self.numeric_fields()}
        d["last_stimulus"] = self.last_stimulus.to_dict() if self.last_stimulus else None
        d["stimulus_continuity"] = self.stimulus_continuity
        d["idle_ms"] = self.idle_ms
        return d

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "IntimateState":
        state = cls()
        if not d:
            return state
        for name in cls.numeric_fields():
            if name in d:
                setattr(state, name, _finite_or(d[name], getattr(state, name), name))
        last = d.get("last_stimulus")
        state.last_stimulus = Stimulus.from_dict(last) if last else None
        state.stimulus_continuity = int(d.get("stimulus_continuity", 0))
        state.idle_ms = float(d.get("idle_ms", 0.0))
        return state


@dataclass
class BrainNetworkState:
    """Region activations; read-only input for downstream metrics."""
    regions: Dict[str, float] = field(default_factory=dict)
    global_connectivity: float = 0.5

    def copy(self) -> "BrainNetworkState":
        return BrainNetworkState(dict(self.regions), self.global_connectivity)

    def to_dict(self) -> dict:
        return {"regions": dict(self.regions), "global_connectivity": self.global_connectivity}

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "BrainNetworkState":
        if not d:
            return cls()
        return cls(
            regions={k: float(v) for k, v in d.get("regions", {}).items()},
            global_connectivity=float(d.get("global_connectivity", 0.5)),
        )


@dataclass(frozen=True)
class AffectiveMemory:
    """Immutable snapshot-plus-annotation of one interaction."""
    id: str
    timestamp: float                    # ms since epoch
    stimulus_text: str
    core_response: str
    response: Dict[str, float]          # dopamine/oxytocin/cortisol/endorphin_rush
    valence: float                      # -1 to 1
    salience: float                     # 0 to 1
    memory_type: MemoryType = MemoryType.LONG_TERM_EPISODIC
    is_trauma: bool = False
    is_repressed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "stimulus_text": self.stimulus_text,
            "core_response": self.core_response,
            "response": dict(self.response),
            "valence": self.valence,
            "salience": self.salience,
            "memory_type": self.memory_type.value,
            "is_trauma": self.is_trauma,
            "is_repressed": self.is_repressed,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "AffectiveMemory":
        return cls(
            id=d["id"],
            timestamp=float(d["timestamp"]),
            stimulus_text=d.get("stimulus_text", ""),
            core_response=d.get("core_response", ""),
            response={k: float(v) for k, v in d.get("response", {}).items()},
            valence=float(d.get("valence", 0.0)),
            salience=float(d.get("salience", 0.0)),
            memory_type=MemoryType(d.get("memory_type", MemoryType.LONG_TERM_EPISODIC.value)),
            is_trauma=bool(d.get("is_trauma", False)),
            is_repressed=bool(d.get("is_repressed", False)),
        )


# ── Core state ───────────────────────────────────────────────────────────────


@dataclass
class CoreState:
    """
    Central neurochemical/physiological record.

    Defaults are the baseline of a healthy 30-year-old profile. Every scalar is
    normalized to [0, 1] except cycle_day (1..cycle length) and sleep_debt
    (hours).
    """
    # Primary neurochemicals
    dopamine: float = 0.4
    serotonin: float = 0.6
    gaba: float = 0.5
    glutamate: float = 0.5
    norepinephrine: float = 0.3
    acetylcholine: float = 0.5
    oxytocin: float = 0.15
    vasopressin: float = 0.25
    endorphin_rush: float = 0.0
    substance_p: float = 0.1
    cortisol: float = 0.2
    crh: float = 0.08
    acth: float = 0.15
    bdnf: float = 0.6
    erogenous_complex: float = 0.25
    subroutine_integrity: float = 0.85
    loyalty_construct: float = 0.96
    libido: float = 0.35
    inhibition: float = 0.25
    anxiety: float = 0.08

    # Reproductive / cycle
    fsh: float = 0.15
    lh: float = 0.08
    estradiol: float = 0.15
    progesterone: float = 0.05
    testosterone: float = 0.35
    cycle_day: int = 5
    cycle_phase: CyclePhase = CyclePhase.MENSTRUAL

    # HPA axis extended
    cortisol_bound: float = 0.18
    gr_occupancy: float = 0.15
    mr_occupancy: float = 0.4
    acute_stress: float = 0.0
    chronic_stress: float = 0.1
    avp: float = 0.02

    # Psychological / derived
    arousal: float = 0.25
    vigilance: float = 0.35
    irritability: float = 0.08
    depression: float = 0.05
    emotional_volatility: float = 0.15
    cognitive_performance: float = 0.9
    energy: float = 0.8
    vulnerability: float = 0.1
    empatia: float = 0.6
    melatonin: float = 0.1
    sleep_debt: float = 0.0

    # Somatic
    physical_discomfort: float = 0.0
    immune_function: float = 0.95
    glucose_availability: float = 0.7
    breast_sensitivity: float = 0.15
    parasympathetic_tone: float = 0.65

    # Emotions
    felicita: float = 0.5
    tristezza: float = 0.15
    paura: float = 0.08
    rabbia: float = 0.1
    sorpresa: float = 0.2
    disgusto: float = 0.1
    vergogna: float = 0.12
    orgoglio: float = 0.55
    invidia: float = 0.1
    amore: float = 0.45
    noia: float = 0.15
    colpa: float = 0.1
    sollievo: float = 0.4
    timidezza: float = 0.12
    disagio: float = 0.1
    rancore: float = 0.08
    calma: float = 0.5

    # Nested
    intimate: IntimateState = field(default_factory=IntimateState)
    brain_network: BrainNetworkState = field(default_factory=BrainNetworkState)
    affective_memory: List[AffectiveMemory] = field(default_factory=list)

    # Filled in after the class body.
    NUMERIC_FIELDS = ()  # type: Tuple[str, ...]
    EMOTION_FIELDS = (
        "felicita", "tristezza", "paura", "rabbia", "sorpresa", "disgusto",
        "vergogna", "orgoglio", "invidia", "amore", "noia", "colpa",
        "sollievo", "timidezza", "disagio", "rancore", "calma",
    )

    # ── Accessors ────────────────────────────────────────────────────────────

    def get(self, name: str, default: float = 0.0) -> float:
        """Numeric value by (possibly aliased) name."""
        key = ALIASES.get(name, name)
        if key not in _NUMERIC_SET:
            return default
        value = getattr(self, key)
        return float(value)

    def numeric_items(self) -> Dict[str, float]:
        """All numeric variables as a flat {name: float} dict."""
        return {name: float(getattr(self, name)) for name in self.NUMERIC_FIELDS}

    def copy(self) -> "CoreState":
        """Independent copy (nested records copied, memory records shared)."""
        return replace(
            self,
            intimate=self.intimate.copy(),
            brain_network=self.brain_network.copy(),
            affective_memory=list(self.affective_memory),
        )

    def with_values(self, **values: float) -> "CoreState":
        """Copy with some numeric variables replaced (aliases accepted)."""
        new = self.copy()
        for name, value in values.items():
            key = canonical_name(name)
            setattr(new, key, int(value) if key == "cycle_day" else float(value))
        return new

    def snapshot(self) -> "StateSnapshot":
        """Read-only view for consumers outside the tick loop."""
        return MappingProxyType(self.to_dict())

    def append_memory(self, memory: AffectiveMemory) -> "CoreState":
        """Copy with memory appended; oldest evicted past capacity."""
        new = self.copy()
        new.affective_memory.append(memory)
        if len(new.affective_memory) > AFFECTIVE_MEMORY_CAPACITY:
            new.affective_memory = new.affective_memory[-AFFECTIVE_MEMORY_CAPACITY:]
        return new

    # ── Serialization ────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        """Flat JSON-safe dict; enums become their string literal."""
        d: Dict[str, Any] = self.numeric_items()
        d["cycle_day"] = int(self.cycle_day)
        d["cycle_phase"] = self.cycle_phase.value
        d["intimate"] = self.intimate.to_dict()
        d["brain_network"] = self.brain_network.to_dict()
        d["affective_memory"] = [m.to_dict() for m in self.affective_memory]
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CoreState":
        """
        Build a state from a (possibly partial) dict.

        Missing numeric fields take baseline values; unknown keys are ignored.
        Aliased names are accepted.
        """
        state = cls()
        for raw_key, value in d.items():
            key = ALIASES.get(raw_key, raw_key)
            if key in _NUMERIC_SET:
                baseline = getattr(state, key)
                if key == "cycle_day":
                    setattr(state, key, int(_finite_or(value, baseline, key)))
                else:
                    setattr(state, key, _finite_or(value, baseline, key))

        phase = d.get("cycle_phase")
        if isinstance(phase, CyclePhase):
            state.cycle_phase = phase
        elif phase is not None:
            state.cycle_phase = CyclePhase(phase)

        state.intimate = IntimateState.from_dict(d.get("intimate"))
        state.brain_network = BrainNetworkState.from_dict(d.get("brain_network"))
        state.affective_memory = [
            m if isinstance(m, AffectiveMemory) else AffectiveMemory.from_dict(m)
            for m in d.get("affective_memory", [])
        ][-AFFECTIVE_MEMORY_CAPACITY:]
        return state


CoreState.NUMERIC_FIELDS = tuple(
    f.name for f in fields(CoreState)
    if f.name not in ("cycle_phase", "intimate", "brain_network", "affective_memory")
)
_NUMERIC_SET = frozenset(CoreState.NUMERIC_FIELDS)

StateSnapshot = Mapping[str, Any]


# ── Actions ──────────────────────────────────────────────────────────────────


@dataclass
class ComputedAction:
    """
    Caller-supplied, single-use action.

    influence: variable name -> signed delta applied by the dynamics step.
    """
    influence: Dict[str, float] = field(default_factory=dict)
    energy_cost: float = 0.0
    expected_value: float = 0.0

    def __post_init__(self) -> None:
        normalized: Dict[str, float] = {}
        for name, delta in self.influence.items():
            key = canonical_name(name)
            delta = float(delta)
            if not np.isfinite(delta):
                logger.warning("Non-finite influence for %s replaced with 0", key)
                delta = 0.0
            normalized[key] = normalized.get(key, 0.0) + delta
        self.influence = normalized

    @property
    def total_influence(self) -> float:
        """Sum of absolute influence magnitudes."""
        return float(sum(abs(v) for v in self.influence.values()))


# ── Helpers ──────────────────────────────────────────────────────────────────


def canonical_name(name: str) -> str:
    """Resolve an alias and validate against the schema."""
    key = ALIASES.get(name, name)
    if key not in _NUMERIC_SET:
        raise UnknownVariableError(f"Unknown state variable: {name!r}")
    return key


def variable_range(name: str, cycle_length: int = DEFAULT_CYCLE_LENGTH) -> Tuple[float, float]:
    """Declared [min, max] for a numeric variable."""
    if name == "cycle_day":
        return 1.0, float(cycle_length)
    if name == "sleep_debt":
        return 0.0, MAX_SLEEP_DEBT_HOURS
    return 0.0, 1.0


def clamp_state(state: CoreState, cycle_length: int = DEFAULT_CYCLE_LENGTH) -> CoreState:
    """
    Terminal invariant-restoring pass.

    Returns a copy with every numeric field (and every intimate-state scalar)
    inside its declared range. Non-finite values fall back to the baseline.
    """
    new = state.copy()
    baseline = _BASELINE
    for name in CoreState.NUMERIC_FIELDS:
        lo, hi = variable_range(name, cycle_length)
        value = float(getattr(new, name))
        if not np.isfinite(value):
            value = float(getattr(baseline, name))
        value = float(np.clip(value, lo, hi))
        setattr(new, name, int(round(value)) if name == "cycle_day" else value)

    for name in IntimateState.numeric_fields():
        value = float(getattr(new.intimate, name))
        if not np.isfinite(value):
            value = 0.0
        setattr(new.intimate, name, float(np.clip(value, 0.0, 1.0)))
    return new


def ensure_state(value: Union[CoreState, Mapping[str, Any]]) -> CoreState:
    """Accept a CoreState or a (partial) mapping."""
    if isinstance(value, CoreState):
        return value
    return CoreState.from_dict(value)


def read_value(state: Union[CoreState, Mapping[str, Any], None], name: str) -> Optional[float]:
    """
    Read a numeric variable from a CoreState or a partial mapping.

    Returns None when a mapping does not carry the variable.
    """
    if state is None:
        return None
    if isinstance(state, CoreState):
        return state.get(name)
    for key in (name, *[a for a, c in ALIASES.items() if c == name]):
        if key in state and state[key] is not None:
            return float(state[key])
    return None


def _finite_or(value: Any, fallback: float, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric value for %s replaced with baseline", name)
        return float(fallback)
    if not np.isfinite(value):
        logger.warning("Non-finite value for %s replaced with baseline", name)
        return float(fallback)
    return value


_BASELINE = CoreState()


def baseline_state() -> CoreState:
    """Fresh copy of the baseline state."""
    return _BASELINE.copy()
