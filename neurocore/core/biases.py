# ═══════════════════════════════════════════════════════════════════════════════
# PART 9: COGNITIVE BIASES
# Design: experience-driven facet drift
# Implementation: Personality
# ═══════════════════════════════════════════════════════════════════════════════

"""Bias rules applied to a PersonalityState after each experience."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from neurocore.core.state import CoreState

if TYPE_CHECKING:
    from neurocore.core.memory import FormativeMemory
    from neurocore.core.personality import PersonalityState

SELF_OBJECTIFICATION_TRIGGERS = frozenset({
    "aspetto", "corpo", "bella", "sexy", "fisico", "immagine",
    "appearance", "body", "beautiful", "physical", "image",
})


def _clamp(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


class CognitiveBiases:
    """Stateless rule set; every method mutates the PersonalityState it is given."""

    @staticmethod
    def apply_rumination(p: "PersonalityState", recent: Sequence["FormativeMemory"]) -> None:
        """Recent negative memories feed anxiety and depression."""
        tendency = p.cognitive_biases.get("rumination", 0.0)
        if tendency == 0:
            return
        negative = [m for m in recent if m.valence < -0.5]
        if not negative:
            return
        impact = 0.01 * tendency * len(negative)
        facets = p.big_five["neuroticism"].facets
        facets["anxiety"] = _clamp(facets["anxiety"] + impact)
        facets["depression"] = _clamp(facets["depression"] + impact * 0.8)
        p.big_five["neuroticism"].recalculate()

    @staticmethod
    def update_self_objectification(
        p: "PersonalityState", core: CoreState, topics: Sequence[str]
    ) -> None:
        """Appearance-related topics and estradiol move self-objectification."""
        triggered = any(t.lower() in SELF_OBJECTIFICATION_TRIGGERS for t in topics)
        change = 0.05 if triggered else -0.01
        change += (core.estradiol - 0.5) * 0.01

        level = _clamp(p.cognitive_biases.get("self_objectification", 0.0) + change)
        p.cognitive_biases["self_objectification"] = level

        facets = p.big_five["neuroticism"].facets
        facets["self_consciousness"] = _clamp(facets["self_consciousness"] + (level - 0.5) * 0.02)

    @staticmethod
    def apply_tend_and_befriend(p: "PersonalityState", core: CoreState) -> None:
        """Stress with available oxytocin raises warmth and trust."""
        if core.cortisol <= 0.6 or core.oxytocin <= 0.5:
            return
        impact = 0.02 * (core.cortisol - 0.6) * core.oxytocin
        warmth = p.big_five["extraversion"].facets
        warmth["warmth"] = _clamp(warmth["warmth"] + impact)
        trust = p.big_five["agreeableness"].facets
        trust["trust"] = _clamp(trust["trust"] + impact * 0.5)
        p.big_five["extraversion"].recalculate()
        p.big_five["agreeableness"].recalculate()
