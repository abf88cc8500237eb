"""Tests for MenstrualCycle day/phase derivation and emotional modulation."""

import pytest

from neurocore.core.cycle import DAY_MS, CycleConfig, MenstrualCycle
from neurocore.core.state import CyclePhase, baseline_state


@pytest.fixture
def cycle():
    return MenstrualCycle()


# ── Day / phase ──────────────────────────────────────────────────────────────


def test_day_at_start(cycle):
    """Elapsed 0 is the configured start day."""
    assert cycle.day_at(0) == 5


def test_day_wraps(cycle):
    assert cycle.day_at(23 * DAY_MS) == 28
    assert cycle.day_at(24 * DAY_MS) == 1


def test_negative_elapsed_is_start(cycle):
    assert cycle.day_at(-DAY_MS) == 5


@pytest.mark.parametrize("day,phase", [
    (1, CyclePhase.MENSTRUAL),
    (5, CyclePhase.MENSTRUAL),
    (6, CyclePhase.FOLLICULAR),
    (12, CyclePhase.FOLLICULAR),
    (14, CyclePhase.OVULATION),
    (16, CyclePhase.LUTEAL_EARLY),
    (21, CyclePhase.LUTEAL_EARLY),
    (22, CyclePhase.LUTEAL_LATE),
    (28, CyclePhase.LUTEAL_LATE),
])
def test_phase_ranges(cycle, day, phase):
    assert cycle.phase_for_day(day) is phase


def test_phase_ranges_scale_with_length():
    """On a 35-day cycle day 14 is still follicular."""
    long_cycle = MenstrualCycle(CycleConfig(cycle_length=35))
    assert long_cycle.phase_for_day(14) is CyclePhase.FOLLICULAR
    assert long_cycle.phase_for_day(35) is CyclePhase.LUTEAL_LATE


def test_invalid_length_clamped():
    assert MenstrualCycle(CycleConfig(cycle_length=0)).config.cycle_length == 28


def test_update_sets_day_and_phase(cycle):
    s = baseline_state()
    new = cycle.update(s, 9 * DAY_MS)
    assert new.cycle_day == 14
    assert new.cycle_phase is CyclePhase.OVULATION
    assert s.cycle_day == 5


def test_update_sets_gonadotropins(cycle):
    new = cycle.update(baseline_state(), 9 * DAY_MS)
    assert (new.fsh, new.lh) == cycle.gonadotropins(14)
    assert new.lh == pytest.approx(0.9)


# ── Gonadotropins ────────────────────────────────────────────────────────────


def test_lh_surge_peaks_at_ovulation(cycle):
    levels = {day: cycle.gonadotropins(day)[1] for day in range(1, 29)}
    assert max(levels, key=levels.get) == 14
    assert levels[14] > 0.5
    assert all(levels[d] < 0.5 for d in levels if d != 14)
    assert levels[5] == pytest.approx(0.06, abs=1e-3)


def test_fsh_varies_over_cycle(cycle):
    fsh = {day: cycle.gonadotropins(day)[0] for day in range(1, 29)}
    assert fsh[2] > fsh[8]
    assert fsh[14] > fsh[10]
    assert fsh[24] == pytest.approx(0.1, abs=1e-3)


def test_surge_scales_with_cycle_length():
    long_cycle = MenstrualCycle(CycleConfig(cycle_length=35))
    levels = {day: long_cycle.gonadotropins(day)[1] for day in range(1, 36)}
    assert max(levels, key=levels.get) in (17, 18)


def test_high_chronic_stress_suppresses_gonadotropins(cycle):
    fsh, lh = cycle.gonadotropins(14)
    stressed_fsh, stressed_lh = cycle.gonadotropins(14, chronic_stress=0.9)
    assert stressed_fsh == pytest.approx(fsh * 0.73)
    assert stressed_lh == pytest.approx(lh * 0.64)
    assert cycle.gonadotropins(14, chronic_stress=0.5) == (fsh, lh)


def test_ovulation_boost_follows_surge(cycle):
    """On the surge day the LH boost amplifies ovulatory mood."""
    peak = cycle.update(baseline_state(), 9 * DAY_MS)
    edge = cycle.update(baseline_state(), 8 * DAY_MS)
    assert peak.cycle_phase is edge.cycle_phase is CyclePhase.OVULATION
    peak = peak.with_values(estradiol=0.6, felicita=0.5)
    edge = edge.with_values(estradiol=0.6, felicita=0.5)
    assert cycle.modulate_emotions(peak).felicita > cycle.modulate_emotions(edge).felicita


# ── Modulation ───────────────────────────────────────────────────────────────


def test_menstrual_sadness(cycle):
    s = baseline_state()
    s.cycle_phase = CyclePhase.MENSTRUAL
    new = cycle.modulate_emotions(s)
    assert new.tristezza == pytest.approx(s.tristezza + 0.15)
    assert new.energy == pytest.approx(s.energy * 0.85)


def test_luteal_late_raises_anxiety(cycle):
    s = baseline_state().with_values(progesterone=0.5, cycle_day=27)
    s.cycle_phase = CyclePhase.LUTEAL_LATE
    new = cycle.modulate_emotions(s)
    assert new.anxiety > s.anxiety
    assert new.irritability > s.irritability


def test_luteal_vulnerability_range(cycle):
    assert cycle.luteal_vulnerability(10) == 0.0
    assert cycle.luteal_vulnerability(28) == 1.0


def test_modulation_does_not_mutate(cycle):
    s = baseline_state()
    s.cycle_phase = CyclePhase.OVULATION
    cycle.modulate_emotions(s)
    assert s.felicita == pytest.approx(0.5)
