"""Tests for HPAAxis: cascade lags, stress accumulation, receptor feedback."""

import pytest

from neurocore.core.hpa import HPAAxis, HPAConfig
from neurocore.core.state import baseline_state

HOUR = 3_600_000
MINUTE = 60_000


@pytest.fixture
def hpa():
    return HPAAxis()


def sustain(hpa, state, cortisol, hours):
    for _ in range(hours):
        state = hpa.step(state.with_values(cortisol=cortisol), HOUR)
    return state


# ── Resting axis ─────────────────────────────────────────────────────────────


def test_rest_is_steady(hpa):
    s = baseline_state()
    new = hpa.step(s, HOUR)
    assert new.crh == pytest.approx(s.crh, abs=1e-3)
    assert new.acth == pytest.approx(s.acth, abs=1e-3)
    assert new.gr_occupancy == pytest.approx(s.gr_occupancy, abs=1e-3)
    assert new.mr_occupancy == pytest.approx(s.mr_occupancy, abs=1e-3)
    assert new.avp == pytest.approx(s.avp, abs=1e-3)
    assert new.chronic_stress == pytest.approx(s.chronic_stress)
    assert new.acute_stress == 0.0


def test_zero_dt_changes_nothing(hpa):
    s = baseline_state().with_values(cortisol=0.9)
    assert hpa.step(s, 0).to_dict() == s.to_dict()
    assert hpa.allostatic_load == 0.0


def test_step_does_not_mutate(hpa):
    s = baseline_state().with_values(cortisol=0.9)
    hpa.step(s, HOUR)
    assert s.acute_stress == 0.0
    assert s.chronic_stress == pytest.approx(0.1)


# ── Stress accumulation ──────────────────────────────────────────────────────


def test_acute_stress_follows_excess_cortisol(hpa):
    new = hpa.step(baseline_state().with_values(cortisol=0.6), MINUTE)
    assert new.acute_stress == pytest.approx(0.5)


def test_sustained_cortisol_builds_chronic_stress(hpa):
    s = sustain(hpa, baseline_state(), 0.8, 48)
    assert s.chronic_stress > 0.3
    assert hpa.allostatic_load > 0.0
    assert hpa.recovery_capacity < 0.95


def test_chronic_stress_recovers_slowly(hpa):
    stressed = sustain(hpa, baseline_state(), 0.8, 48)
    rested = sustain(hpa, stressed.with_values(acute_stress=0.0), 0.2, 24)
    assert 0.1 < rested.chronic_stress < stressed.chronic_stress


def test_chronic_stress_raises_avp(hpa):
    s = sustain(hpa, baseline_state(), 0.8, 48)
    assert s.avp > baseline_state().avp


# ── Receptors and feedback ───────────────────────────────────────────────────


def test_receptor_occupancy_rises_with_cortisol(hpa):
    s = sustain(hpa, baseline_state(), 0.8, 1)
    assert s.gr_occupancy > 0.3
    assert s.mr_occupancy > 0.7


def test_mr_saturates_before_gr(hpa):
    assert hpa.mr_occupancy(0.2) > 2 * hpa.gr_occupancy(0.2)


def test_gr_feedback_suppresses_releasing_hormones(hpa):
    s = sustain(hpa, baseline_state(), 0.8, 6)
    assert s.crh < 0.08
    assert s.acth < 0.15


def test_allostatic_load_downregulates_gr(hpa):
    fresh = hpa.gr_occupancy(0.5)
    hpa.allostatic_load = 0.5
    assert hpa.gr_occupancy(0.5) == pytest.approx(fresh * 0.75)


# ── Acute stressors ──────────────────────────────────────────────────────────


def test_stressor_surges_crh(hpa):
    s = baseline_state()
    new = hpa.apply_acute_stress(s, 0.8)
    assert new.crh > s.crh
    assert new.acute_stress == pytest.approx(0.8)
    assert new.norepinephrine == pytest.approx(s.norepinephrine + 0.56)
    assert new.acth == s.acth


def test_cascade_reaches_acth_then_cortisol(hpa):
    stressed = hpa.apply_acute_stress(baseline_state(), 0.8)
    after = hpa.step(stressed, MINUTE)
    assert after.acth > stressed.acth
    assert after.cortisol > stressed.cortisol
    later = hpa.step(after, 10 * MINUTE)
    assert later.cortisol > after.cortisol


def test_psychological_stress_more_reactive():
    s = baseline_state()
    physical = HPAAxis().apply_acute_stress(s, 0.8, "physical")
    psychological = HPAAxis().apply_acute_stress(s, 0.8, "psychological")
    assert psychological.crh > physical.crh


def test_repeated_stressors_sensitize(hpa):
    s = hpa.apply_acute_stress(baseline_state(), 0.5)
    assert hpa.sensitization == 0.0
    s = hpa.step(s, 10 * MINUTE)
    hpa.apply_acute_stress(s, 0.5)
    assert hpa.sensitization == pytest.approx(0.0575)


def test_magnitude_clipped(hpa):
    new = hpa.apply_acute_stress(baseline_state(), 3.0)
    assert new.acute_stress == 1.0
    assert 0.0 <= new.crh <= 1.0


# ── Serialization ────────────────────────────────────────────────────────────


def test_state_roundtrip(hpa):
    s = hpa.apply_acute_stress(baseline_state(), 0.7)
    sustain(hpa, s, 0.7, 3)
    other = HPAAxis(HPAConfig())
    other.restore(hpa.get_state())
    assert other.get_state() == hpa.get_state()


def test_restore_defaults():
    hpa = HPAAxis()
    hpa.restore({})
    assert hpa.hours_since_stressor is None
    assert hpa.recovery_capacity == 0.95
