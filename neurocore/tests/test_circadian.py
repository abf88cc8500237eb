"""Tests for CircadianClock."""

from datetime import datetime

import pytest

from neurocore.core.circadian import CircadianClock, CircadianConfig, SleepStage
from neurocore.core.state import CyclePhase, baseline_state

HOUR = 3_600_000


def at(hour: int, minute: int = 0, **config) -> CircadianClock:
    return CircadianClock(CircadianConfig(**config), start_time=datetime(2024, 3, 20, hour, minute))


# ── Clock ────────────────────────────────────────────────────────────────────


def test_tick_advances_time():
    clock = at(6)
    clock.tick(90 * 60_000)
    assert clock.hour == 7
    assert clock.circadian_phase == pytest.approx(7.5)
    assert clock.ultradian_phase == pytest.approx(0.0)
    assert clock.norepinephrine_phase == pytest.approx(0.75)


def test_negative_tick_ignored():
    clock = at(6)
    clock.tick(-HOUR)
    assert clock.hour == 6


def test_phase_labels():
    assert at(6).get_circadian_phase_label() == "early_morning"
    assert at(10).get_circadian_phase_label() == "morning"
    assert at(14).get_circadian_phase_label() == "afternoon"
    assert at(19).get_circadian_phase_label() == "evening"
    assert at(23).get_circadian_phase_label() == "night"
    assert at(3).get_circadian_phase_label() == "deep_night"


def test_unknown_chronotype_falls_back():
    clock = at(8, chronotype="vampire")
    assert clock.chronotype.name == "intermediate"


# ── Curves ───────────────────────────────────────────────────────────────────


def test_cortisol_morning_peak_exceeds_evening():
    assert at(6).cortisol_multiplier() > at(18).cortisol_multiplier()


def test_cortisol_night_trough():
    assert at(23).cortisol_multiplier() == pytest.approx(0.3)


def test_cortisol_multiplier_bounded():
    for hour in range(24):
        assert 0.3 <= at(hour).cortisol_multiplier() <= 1.5


def test_melatonin_night_high_day_low():
    assert at(2).melatonin_level() > at(14).melatonin_level()


def test_melatonin_female_higher():
    female = at(2, gender="female").melatonin_level()
    male = at(2, gender="male").melatonin_level()
    assert female == pytest.approx(male * 1.18)


def test_light_suppresses_melatonin():
    clock = at(2)
    dark = clock.melatonin_level()
    clock.set_light_intensity(1000)
    assert clock.melatonin_level() < dark


def test_testosterone_multiplier_bounded():
    for hour in range(24):
        assert 0.7 <= at(hour).testosterone_multiplier() <= 1.3


def test_luteal_phase_raises_cortisol_peak():
    clock = at(6)
    base = clock.cortisol_multiplier()
    clock.set_menstrual_cycle(CyclePhase.LUTEAL_EARLY, 18)
    assert clock.cortisol_multiplier() >= base


# ── Photoperiod ──────────────────────────────────────────────────────────────


def test_photoperiod_equinox_near_twelve():
    assert at(12).photoperiod == pytest.approx(12.0, abs=0.3)


def test_photoperiod_summer_longer_north():
    summer = CircadianClock(CircadianConfig(latitude=45), start_time=datetime(2024, 6, 21, 12))
    winter = CircadianClock(CircadianConfig(latitude=45), start_time=datetime(2024, 12, 21, 12))
    assert summer.photoperiod > 14 > 10 > winter.photoperiod


# ── Sleep ────────────────────────────────────────────────────────────────────


def test_sleep_debt_accrues_after_sixteen_hours():
    clock = at(7)
    clock.tick(16 * HOUR)
    assert clock.sleep_debt == 0.0
    clock.tick(4 * HOUR)
    assert clock.sleep_debt == pytest.approx(4.0)


def test_sleep_repays_debt():
    clock = at(7)
    clock.tick(20 * HOUR)
    clock.set_sleep_stage(SleepStage.NREM3)
    clock.tick(3 * HOUR)
    assert clock.sleep_debt == pytest.approx(1.0)


def test_waking_resets_hours_awake():
    clock = at(7)
    clock.tick(10 * HOUR)
    clock.set_sleep_stage(SleepStage.REM)
    clock.set_sleep_stage(SleepStage.AWAKE)
    assert clock.hours_awake == 0.0


def test_sleep_debt_capped():
    clock = at(7)
    clock.tick(200 * HOUR)
    assert clock.sleep_debt == 48.0


def test_auto_sleep_follows_window():
    clock = at(22, auto_sleep=True)
    clock.tick(2 * HOUR)
    assert clock.sleep_stage is not SleepStage.AWAKE


# ── Modulation ───────────────────────────────────────────────────────────────


def test_modulate_writes_melatonin_and_debt():
    clock = at(7)
    clock.tick(18 * HOUR)
    s = clock.modulate(baseline_state())
    assert s.melatonin == pytest.approx(clock.melatonin_level())
    assert s.sleep_debt == pytest.approx(2.0)


def test_modulate_morning_happier():
    s = baseline_state()
    assert at(9).modulate(s).felicita == pytest.approx(s.felicita + 0.1)


def test_modulate_keeps_zero_levels():
    """A depleted hormone stays at zero; it is never replaced by a default."""
    s = baseline_state().with_values(cortisol=0.0, dopamine=0.0, testosterone=0.0)
    out = at(8).modulate(s)
    assert out.cortisol == 0.0
    assert out.dopamine == 0.0
    assert out.testosterone == 0.0


def test_modulate_does_not_mutate():
    s = baseline_state()
    at(6).modulate(s)
    assert s.cortisol == pytest.approx(0.2)


# ── Serialization ────────────────────────────────────────────────────────────


def test_state_roundtrip():
    clock = at(7)
    clock.tick(20 * HOUR)
    clock.set_sleep_stage(SleepStage.NREM2)
    other = at(12)
    other.restore(clock.get_state())
    assert other.current_time == clock.current_time
    assert other.sleep_debt == clock.sleep_debt
    assert other.sleep_stage is SleepStage.NREM2
    assert other.photoperiod == pytest.approx(clock.photoperiod)
