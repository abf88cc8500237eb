"""Tests for CoreState, ComputedAction and the clamp/serialization helpers."""

import json
import math

import numpy as np
import pytest

from neurocore.core.state import (
    AFFECTIVE_MEMORY_CAPACITY,
    AffectiveMemory,
    ComputedAction,
    CoreState,
    CyclePhase,
    IntimateState,
    MemoryType,
    Stimulus,
    StimulusType,
    UnknownVariableError,
    baseline_state,
    canonical_name,
    clamp_state,
    read_value,
    variable_range,
)


def _memory(i: int) -> AffectiveMemory:
    return AffectiveMemory(
        id=f"m{i}",
        timestamp=float(i),
        stimulus_text="hello",
        core_response="hi",
        response={"dopamine": 0.5},
        valence=0.4,
        salience=0.6,
        memory_type=MemoryType.LONG_TERM_EPISODIC,
    )


# ── Schema ───────────────────────────────────────────────────────────────────


def test_numeric_fields_closed_set():
    """NUMERIC_FIELDS lists scalars only, not nested records."""
    fields = CoreState.NUMERIC_FIELDS
    assert "dopamine" in fields
    assert "subroutine_integrity" in fields
    assert "cycle_day" in fields
    assert "cycle_phase" not in fields
    assert "intimate" not in fields
    assert "affective_memory" not in fields


def test_emotion_fields_are_numeric():
    """Every emotion is a numeric variable."""
    assert set(CoreState.EMOTION_FIELDS) <= set(CoreState.NUMERIC_FIELDS)


def test_aliases_resolve():
    """Legacy camel-case names map to canonical ones."""
    assert canonical_name("subroutineIntegrity") == "subroutine_integrity"
    assert canonical_name("estrogen") == "estradiol"
    assert canonical_name("dopamine") == "dopamine"


def test_unknown_name_raises():
    """Typos are rejected."""
    with pytest.raises(UnknownVariableError):
        canonical_name("dopamin")


def test_unknown_variable_error_is_value_error():
    assert issubclass(UnknownVariableError, ValueError)


def test_variable_ranges():
    assert variable_range("dopamine") == (0.0, 1.0)
    assert variable_range("cycle_day", 30) == (1.0, 30.0)
    assert variable_range("sleep_debt") == (0.0, 48.0)


# ── ComputedAction ───────────────────────────────────────────────────────────


def test_action_validates_keys():
    """Unknown influence keys fail at construction."""
    with pytest.raises(UnknownVariableError):
        ComputedAction(influence={"cortisl": 0.1})


def test_action_normalizes_aliases():
    """Aliased keys are stored under canonical names and merged."""
    action = ComputedAction(influence={"estrogen": 0.1, "estradiol": 0.05})
    assert action.influence == {"estradiol": pytest.approx(0.15)}


def test_action_non_finite_influence_zeroed():
    action = ComputedAction(influence={"dopamine": float("nan")})
    assert action.influence["dopamine"] == 0.0


def test_total_influence():
    action = ComputedAction(influence={"dopamine": 0.3, "cortisol": -0.2})
    assert action.total_influence == pytest.approx(0.5)


# ── Copy / access ────────────────────────────────────────────────────────────


def test_copy_is_independent():
    """Mutating a copy leaves the original alone (nested records too)."""
    s = baseline_state()
    c = s.copy()
    c.dopamine = 0.9
    c.intimate.arousal = 0.8
    c.affective_memory.append(_memory(0))
    assert s.dopamine == pytest.approx(0.4)
    assert s.intimate.arousal == 0.0
    assert s.affective_memory == []


def test_with_values_accepts_aliases():
    s = baseline_state().with_values(estrogen=0.7, cycle_day=14.0)
    assert s.estradiol == pytest.approx(0.7)
    assert s.cycle_day == 14
    assert isinstance(s.cycle_day, int)


def test_get_by_alias_and_unknown():
    s = baseline_state()
    assert s.get("subroutineIntegrity") == pytest.approx(0.85)
    assert s.get("nonexistent", -1.0) == -1.0


def test_snapshot_is_read_only():
    snap = baseline_state().snapshot()
    assert snap["dopamine"] == pytest.approx(0.4)
    with pytest.raises(TypeError):
        snap["dopamine"] = 1.0


def test_append_memory_bounded():
    """Oldest affective traces are evicted past capacity."""
    s = baseline_state()
    for i in range(AFFECTIVE_MEMORY_CAPACITY + 5):
        s = s.append_memory(_memory(i))
    assert len(s.affective_memory) == AFFECTIVE_MEMORY_CAPACITY
    assert s.affective_memory[0].id == "m5"


def test_read_value_from_mapping():
    assert read_value({"estrogen": 0.3}, "estradiol") == pytest.approx(0.3)
    assert read_value({}, "cortisol") is None
    assert read_value(None, "cortisol") is None


# ── Clamp ────────────────────────────────────────────────────────────────────


def test_clamp_restores_ranges():
    """Out-of-range and non-finite values come back inside their ranges."""
    s = baseline_state()
    s.dopamine = 1.7
    s.cortisol = -0.4
    s.serotonin = float("nan")
    s.cycle_day = 40
    s.sleep_debt = 100.0
    s.intimate.arousal = 3.0
    c = clamp_state(s, cycle_length=28)
    assert c.dopamine == 1.0
    assert c.cortisol == 0.0
    assert c.serotonin == pytest.approx(0.6)
    assert c.cycle_day == 28
    assert c.sleep_debt == 48.0
    assert c.intimate.arousal == 1.0


def test_clamp_does_not_mutate_input():
    s = baseline_state()
    s.dopamine = 2.0
    clamp_state(s)
    assert s.dopamine == 2.0


# ── Serialization ────────────────────────────────────────────────────────────


def test_to_dict_is_json_safe():
    s = baseline_state().append_memory(_memory(1))
    s.intimate.last_stimulus = Stimulus(StimulusType.WHISPER, pressure=0.3)
    d = s.to_dict()
    json.dumps(d)
    assert d["cycle_phase"] == "menstrual"
    assert d["affective_memory"][0]["memory_type"] == "long_term_episodic"


def test_roundtrip_exact():
    """Numeric fields round-trip exactly through JSON."""
    s = baseline_state().with_values(dopamine=0.123456789012345, cortisol=1 / 3)
    s.cycle_phase = CyclePhase.LUTEAL_LATE
    s.intimate.habituation = 0.3141592653589793
    s = s.append_memory(_memory(2))
    restored = CoreState.from_dict(json.loads(json.dumps(s.to_dict())))
    assert restored.to_dict() == s.to_dict()
    assert restored.cycle_phase is CyclePhase.LUTEAL_LATE


def test_from_dict_partial_uses_baseline():
    """Missing fields take baseline values; unknown keys are ignored."""
    s = CoreState.from_dict({"dopamine": 0.9, "mystery": 4, "subroutineIntegrity": 0.5})
    assert s.dopamine == pytest.approx(0.9)
    assert s.subroutine_integrity == pytest.approx(0.5)
    assert s.cortisol == pytest.approx(0.2)
    assert s.intimate == IntimateState()


def test_from_dict_non_finite_replaced():
    s = CoreState.from_dict({"cortisol": float("inf"), "dopamine": "abc"})
    assert s.cortisol == pytest.approx(0.2)
    assert s.dopamine == pytest.approx(0.4)


def test_stimulus_of_string():
    st = Stimulus.of("firm_touch")
    assert st.type is StimulusType.FIRM_TOUCH
    assert st.pressure == 0.5
    assert Stimulus.from_dict(st.to_dict()) == st


def test_baseline_values_finite():
    s = baseline_state()
    values = np.array(list(s.numeric_items().values()))
    assert np.all(np.isfinite(values))
    assert not math.isnan(s.energy)
