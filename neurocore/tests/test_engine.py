"""Tests for NeuroCore: the tick pipeline and its entry points."""

from datetime import datetime

import pytest

from neurocore.core.cycle import DAY_MS, CycleConfig
from neurocore.core.energy import EnergyCostConfig
from neurocore.core.engine import CoreConfig, NeuroCore, create_core
from neurocore.core.memory import ConversationMemory, Sentiment
from neurocore.core.state import ComputedAction, CyclePhase, variable_range

START = datetime(2024, 3, 20, 9, 0)


@pytest.fixture
def core():
    return create_core("test", start_time=START)


def assert_in_range(state, cycle_length=28):
    for name, value in state.numeric_items().items():
        low, high = variable_range(name, cycle_length)
        assert low <= value <= high, name


def exchange(i=0, **kwargs):
    kwargs.setdefault("sentiment", Sentiment.POSITIVE)
    kwargs.setdefault("emotional_intensity", 0.9)
    return ConversationMemory(
        id=f"c{i}", timestamp=float(i), user_input="good morning", core_response="morning!",
        **kwargs,
    )


# ── Construction ─────────────────────────────────────────────────────────────


def test_create_core(core):
    assert core.name == "test"
    assert core.created_at == START.isoformat()
    assert len(core.genesis_hash) == 64
    assert core.tick_count == 0
    assert core.clock() == pytest.approx(START.timestamp() * 1000)


def test_genesis_depends_on_name():
    a = create_core("a", start_time=START)
    b = create_core("b", start_time=START)
    assert a.genesis_hash != b.genesis_hash


def test_initial_expressed_in_range(core):
    assert_in_range(core.expressed)
    assert core.expressed.cycle_day == 5
    assert core.expressed.cycle_phase is CyclePhase.MENSTRUAL
    assert core.circadian.cycle_phase is CyclePhase.MENSTRUAL


def test_initial_phase_follows_start_day():
    """Day and phase agree before the first tick."""
    core = create_core("late", start_time=START, cycle_config=CycleConfig(start_day=14))
    assert core.base.cycle_day == 14
    assert core.base.cycle_phase is CyclePhase.OVULATION
    assert core.expressed.cycle_phase is CyclePhase.OVULATION
    assert core.circadian.cycle_day == 14


# ── Tick ─────────────────────────────────────────────────────────────────────


def test_tick_default_dt(core):
    result = core.tick()
    assert result.dt_ms == 60_000
    assert result.tick == 1
    assert core.tick_count == 1
    assert core.clock() == pytest.approx(START.timestamp() * 1000 + 60_000)


def test_negative_dt_treated_as_zero(core):
    before = core.clock()
    result = core.tick(-5000)
    assert result.dt_ms == 0.0
    assert core.clock() == before


def test_tick_keeps_ranges_under_extreme_actions(core):
    """Base and expressed states stay in range whatever the action does."""
    push = ComputedAction({"dopamine": 5.0, "cortisol": 5.0, "estrogen": -5.0})
    for _ in range(20):
        result = core.tick(3_600_000, push)
        assert_in_range(result.state)
        assert_in_range(core.base)


def test_action_applied_to_base(core):
    before = core.base.dopamine
    core.tick(0, ComputedAction({"dopamine": 0.2}))
    assert core.base.dopamine > before


def test_cycle_day_advances(core):
    core.tick(DAY_MS)
    assert core.base.cycle_day == 6
    core.run(3, DAY_MS)
    assert core.base.cycle_day == 9
    assert core.base.cycle_phase is CyclePhase.FOLLICULAR


def test_cycle_wraps(core):
    core.run(24, DAY_MS)
    assert core.base.cycle_day == 1


def test_expressed_is_modulated_base(core):
    core.tick(0)
    multiplier = core.circadian.cortisol_multiplier()
    assert core.expressed.cortisol == pytest.approx(min(1.0, core.base.cortisol * multiplier))
    assert core.expressed.melatonin == pytest.approx(core.circadian.melatonin_level())


def test_modulation_does_not_compound(core):
    """Zero-length ticks leave the expressed state unchanged."""
    core.tick(0)
    first = core.state.to_dict()
    for _ in range(5):
        core.tick(0)
    assert core.state.to_dict() == first


def test_state_property_is_copy(core):
    state = core.state
    state.dopamine = 0.99
    assert core.expressed.dopamine != 0.99


def test_run_returns_last(core):
    result = core.run(5, 1000)
    assert result.tick == 5
    assert core.tick_count == 5


def test_constraints_checked(core):
    result = core.tick()
    assert core.last_constraints is result.constraints


def test_sustained_cortisol_reaches_downstream(core):
    """Chronic stress built by the HPA axis feeds the circadian clock."""
    push = ComputedAction({"cortisol": 0.5})
    for _ in range(48):
        core.tick(3_600_000, push)
    assert core.base.chronic_stress > 0.2
    assert core.base.gr_occupancy > 0.15
    assert core.base.crh != pytest.approx(0.08)
    assert core.circadian.stress_level == pytest.approx(core.base.chronic_stress)


def test_gonadotropins_follow_cycle(core):
    core.run(9, DAY_MS)
    assert core.base.cycle_day == 14
    assert core.base.lh > 0.5
    core.tick(DAY_MS)
    assert core.base.lh < 0.5


# ── Stress ───────────────────────────────────────────────────────────────────


def test_apply_stress(core):
    state = core.apply_stress(0.8)
    assert core.base.crh > 0.08
    assert state.acute_stress == pytest.approx(0.8)
    core.tick(60_000)
    assert core.base.acth > 0.15


def test_get_state_reports_stress(core):
    core.apply_stress(0.5)
    hpa = core.get_state()["hpa"]
    assert hpa["acute_stress"] == pytest.approx(0.5)
    assert hpa["recovery_capacity"] == pytest.approx(0.95)


# ── Stimuli ──────────────────────────────────────────────────────────────────


def test_apply_stimulus(core):
    result = core.apply_stimulus("touch_start")
    assert result.intensity == pytest.approx(0.4 * 0.925)
    assert core.base.intimate.arousal > 0
    assert len(core.rhythm.history) == 1


def test_release_stimulus_not_a_beat(core):
    core.apply_stimulus("touch_end")
    assert len(core.rhythm.history) == 0


def test_idle_relaxation_through_tick(core):
    core.apply_stimulus("tease")
    core.tick(600_000)
    assert core.base.intimate.arousal == 0.0


# ── Interactions ─────────────────────────────────────────────────────────────


def test_record_interaction(core):
    conversation = exchange()
    memory = core.record_interaction(conversation)
    assert memory is not None
    assert memory.id == "c0"
    assert conversation.context == {}
    assert len(core.base.affective_memory) == 1
    assert len(core.expressed.affective_memory) == 1


def test_record_without_encoding(core):
    core.record_interaction(exchange(), encode=False)
    assert len(core.base.affective_memory) == 0
    assert len(core.personality.memory) == 1


def test_record_fills_context(core):
    """Missing context is filled from the expressed state."""
    arousal = core.expressed.arousal
    memory = core.record_interaction(exchange())
    assert memory.arousal == pytest.approx(arousal)


def test_mundane_exchange_not_formative(core):
    assert core.record_interaction(exchange(emotional_intensity=0.5)) is None
    assert len(core.personality.memory) == 0


# ── Energy ───────────────────────────────────────────────────────────────────


def test_request_operation(core):
    result = core.request_operation("memory_consolidation")
    assert result.success
    assert core.energy.available < 1000


def test_request_operation_refused():
    core = NeuroCore(CoreConfig(start_time=START, energy_config=EnergyCostConfig(base_budget=20)))
    result = core.request_operation("memory_consolidation")
    assert not result.success
    assert core.energy.available == 20


def test_tick_does_not_consume_energy(core):
    core.run(10)
    assert core.energy.available == 1000


# ── Views ────────────────────────────────────────────────────────────────────


def test_snapshot_read_only(core):
    snap = core.snapshot()
    with pytest.raises(TypeError):
        snap["dopamine"] = 1.0


def test_get_state(core):
    core.tick()
    state = core.get_state()
    assert state["name"] == "test"
    assert state["tick_count"] == 1
    assert state["phase_label"] == "morning"
    assert set(state) >= {"state", "constraints", "energy", "rhythm", "personality"}
    assert state["personality"]["archetype"] == "The Everywoman"


def test_witness(core):
    text = core.witness()
    assert "CORE: test" in text
    assert core.genesis_hash[:16] in text
    assert "Cycle: day 5" in text
