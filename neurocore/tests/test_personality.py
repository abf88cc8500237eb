"""Tests for Personality: traits, archetypes, update channels, serialization."""

import json

import numpy as np
import pytest

from neurocore.core.memory import ConversationMemory, Sentiment
from neurocore.core.personality import (
    ARCHETYPES,
    FALLBACK_ARCHETYPE,
    AttachmentStyle,
    BigFiveTrait,
    Personality,
    PersonalityState,
)
from neurocore.core.state import baseline_state


def conversation(i=0, sentiment=Sentiment.POSITIVE, intensity=0.9, cortisol=0.2, topics=()):
    return ConversationMemory(
        id=f"c{i}",
        timestamp=float(i),
        user_input="hello",
        core_response="hi",
        sentiment=sentiment,
        emotional_intensity=intensity,
        topics=list(topics),
        context={"cortisol": cortisol, "arousal": 0.3},
    )


@pytest.fixture
def personality():
    return Personality()


def assert_scores_are_facet_means(p: Personality):
    for trait in p.state.big_five.values():
        assert trait.score == pytest.approx(np.mean(list(trait.facets.values())))


# ── Traits ───────────────────────────────────────────────────────────────────


def test_recalculate_is_mean():
    trait = BigFiveTrait("x", {"a": 0.2, "b": 0.6})
    assert trait.score == pytest.approx(0.4)
    trait.facets["a"] = 0.4
    assert trait.recalculate() == pytest.approx(0.5)


def test_initial_scores_are_facet_means(personality):
    assert_scores_are_facet_means(personality)
    assert personality.state.score("agreeableness") == pytest.approx(0.6)
    assert personality.state.score("extraversion") == pytest.approx(3.2 / 6)


def test_first_positive_nudge_raises_score(personality):
    """A positive trait nudge never lowers the score."""
    before = personality.state.score("agreeableness")
    personality.update_from_biological_state(baseline_state().with_values(estradiol=0.9, oxytocin=0.9))
    assert personality.state.score("agreeableness") > before


def test_shift_spreads_over_facets():
    trait = BigFiveTrait("x", {"a": 0.2, "b": 0.6})
    trait.shift(0.1)
    assert trait.facets == {"a": pytest.approx(0.3), "b": pytest.approx(0.7)}
    assert trait.score == pytest.approx(0.5)


def test_shift_clamped():
    trait = BigFiveTrait("x", {"a": 0.95})
    trait.shift(0.5)
    assert trait.facets["a"] == 1.0


def test_five_traits_six_facets():
    state = PersonalityState()
    assert set(state.big_five) == {
        "openness", "conscientiousness", "extraversion", "agreeableness", "neuroticism",
    }
    assert all(len(t.facets) == 6 for t in state.big_five.values())


# ── Experience ───────────────────────────────────────────────────────────────


def test_positive_memory_raises_trust(personality):
    trust = personality.state.facet("agreeableness", "trust")
    memory = personality.update_from_experience(conversation(), baseline_state())
    assert memory is not None
    assert personality.state.facet("agreeableness", "trust") > trust
    assert_scores_are_facet_means(personality)


def test_negative_memory_raises_neuroticism(personality):
    before = personality.state.score("neuroticism")
    personality.update_from_experience(
        conversation(sentiment=Sentiment.NEGATIVE, cortisol=0.8), baseline_state()
    )
    assert personality.state.score("neuroticism") > before
    assert personality.state.attachment_style is AttachmentStyle.SECURE


def test_trauma_sets_anxious_attachment(personality):
    personality.update_from_experience(
        conversation(sentiment=Sentiment.NEGATIVE, cortisol=0.9, intensity=0.95),
        baseline_state(),
    )
    assert personality.state.attachment_style is AttachmentStyle.ANXIOUS


def test_repeated_conversation_impacts_once(personality):
    """Memory impact applies on first consolidation only."""
    core = baseline_state()
    personality.update_from_experience(conversation(), core)
    trust = personality.state.facet("agreeableness", "trust")
    personality.update_from_experience(conversation(), core)
    assert personality.state.facet("agreeableness", "trust") == pytest.approx(trust)
    assert len(personality.memory) == 1


def test_insignificant_conversation_no_memory(personality):
    assert personality.update_from_experience(conversation(intensity=0.2), baseline_state()) is None
    assert len(personality.memory) == 0


# ── Biological / long-term ───────────────────────────────────────────────────


def test_biological_nudge_survives_recalculation(personality):
    """Trait nudges are kept by the facet mean."""
    before = personality.state.score("agreeableness")
    core = baseline_state().with_values(estradiol=0.9, oxytocin=0.9)
    for _ in range(10):
        personality.update_from_biological_state(core)
    personality._recalculate_all()
    assert personality.state.score("agreeableness") > before


def test_chronic_stress_raises_neuroticism(personality):
    before = personality.state.score("neuroticism")
    core = baseline_state().with_values(chronic_stress=0.9, estradiol=0.5, progesterone=0.4)
    personality.update_from_biological_state(core)
    assert personality.state.score("neuroticism") > before


def test_long_term_ages(personality):
    personality.long_term_update(24 * 365.25)
    assert personality.state.simulated_age == pytest.approx(26.0)


def test_long_term_drift_over_thirty():
    state = PersonalityState(simulated_age=35.0)
    p = Personality(state)
    before = p.state.score("neuroticism")
    p.long_term_update(1000)
    assert p.state.score("neuroticism") < before


def test_long_term_ignores_non_positive(personality):
    personality.long_term_update(0)
    personality.long_term_update(-5)
    assert personality.state.simulated_age == 25.0


# ── Archetypes ───────────────────────────────────────────────────────────────


def test_initial_archetype_is_fallback(personality):
    assert personality.get_current_archetype() is FALLBACK_ARCHETYPE


def test_caregiver_archetype(personality):
    traits = personality.state.big_five
    traits["agreeableness"].facets["altruism"] = 0.9
    traits["conscientiousness"].facets["dutifulness"] = 0.8
    personality._recalculate_all()
    assert personality.get_current_archetype().name == "The Caregiver"


def test_nine_archetypes():
    assert len(ARCHETYPES) == 9
    assert len({a.name for a in ARCHETYPES}) == 9


def test_summary_mentions_archetype(personality):
    summary = personality.get_personality_summary()
    assert FALLBACK_ARCHETYPE.name in summary


# ── Serialization ────────────────────────────────────────────────────────────


def test_roundtrip(personality):
    personality.update_from_experience(conversation(0), baseline_state())
    personality.update_from_experience(
        conversation(1, sentiment=Sentiment.NEGATIVE, cortisol=0.9, intensity=0.95),
        baseline_state(),
    )
    data = json.loads(json.dumps(personality.to_dict()))
    restored = Personality.from_dict(data)
    assert restored.scores() == personality.scores()
    assert restored.state.attachment_style is AttachmentStyle.ANXIOUS
    assert restored.memory.head_hash == personality.memory.head_hash
    assert restored.memory.verify()


def test_from_partial_dict():
    restored = Personality.from_dict({"big_five": {"openness": {"facets": {"fantasy": 0.9}}}})
    assert restored.state.facet("openness", "fantasy") == 0.9
    assert restored.state.score("openness") == pytest.approx(3.8 / 6)
    assert restored.state.attachment_style is AttachmentStyle.SECURE
    assert len(restored.memory) == 0


def test_copy_independent(personality):
    other = personality.copy()
    other.state.big_five["openness"].shift(0.2)
    assert personality.state.score("openness") != other.state.score("openness")
