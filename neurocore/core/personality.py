# ═══════════════════════════════════════════════════════════════════════════════
# PART 10: PERSONALITY
# Design: Big Five facets + formative memory + biological drift
# Implementation: Personality
# ═══════════════════════════════════════════════════════════════════════════════

"""
Slow-timescale trait model. A trait's score is always the mean of its six
facets; trait-level nudges are spread evenly over the facets so that a later
recalculation keeps them.

Three update channels:
    update_from_experience       - consolidation, memory impact, biases
    update_from_biological_state - per-tick hormonal nudges
    long_term_update             - age-bucketed drift over elapsed hours
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from neurocore.core.biases import CognitiveBiases
from neurocore.core.memory import ConversationMemory, FormativeMemory, MemoryManager
from neurocore.core.state import CoreState

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 24 * 365.25
TRAUMA_IMPACT_FACTOR = 5.0


class AttachmentStyle(Enum):
    SECURE = "secure"
    ANXIOUS = "anxious"
    AVOIDANT = "avoidant"
    DISORGANIZED = "disorganized"


@dataclass
class BigFiveTrait:
    """A trait and its facets; score is always the facet mean."""
    label: str
    facets: Dict[str, float]
    score: float = field(init=False, default=0.0)

    def __post_init__(self) -> None:
        self.recalculate()

    def recalculate(self) -> float:
        self.score = float(np.mean(list(self.facets.values()))) if self.facets else 0.0
        return self.score

    def shift(self, delta: float) -> None:
        """Move every facet by delta (clamped) and recompute the score."""
        for name, value in self.facets.items():
            self.facets[name] = float(np.clip(value + delta, 0.0, 1.0))
        self.recalculate()


def initial_big_five() -> Dict[str, BigFiveTrait]:
    return {
        "openness": BigFiveTrait("openness", {
            "fantasy": 0.7, "aesthetics": 0.6, "feelings": 0.7,
            "actions": 0.5, "ideas": 0.6, "values": 0.5,
        }),
        "conscientiousness": BigFiveTrait("conscientiousness", {
            "competence": 0.6, "order": 0.5, "dutifulness": 0.7,
            "achievement_striving": 0.6, "self_discipline": 0.4, "deliberation": 0.5,
        }),
        "extraversion": BigFiveTrait("extraversion", {
            "warmth": 0.6, "gregariousness": 0.4, "assertiveness": 0.5,
            "activity": 0.6, "excitement_seeking": 0.5, "positive_emotions": 0.6,
        }),
        "agreeableness": BigFiveTrait("agreeableness", {
            "trust": 0.6, "straightforwardness": 0.5, "altruism": 0.7,
            "compliance": 0.6, "modesty": 0.5, "tender_mindedness": 0.7,
        }),
        "neuroticism": BigFiveTrait("neuroticism", {
            "anxiety": 0.5, "angry_hostility": 0.3, "depression": 0.4,
            "self_consciousness": 0.5, "impulsiveness": 0.4, "vulnerability": 0.6,
        }),
    }


def initial_biases() -> Dict[str, float]:
    return {
        "rumination": 0.3,
        "self_objectification": 0.2,
        "stereotype_threat": 0.1,
        "self_fulfilling_prophecy": 0.1,
        "catastrophizing": 0.2,
        "all_or_nothing_thinking": 0.15,
        "emotional_reasoning": 0.25,
        "overgeneralization": 0.2,
        "mind_reading": 0.15,
        "personalization": 0.2,
    }


@dataclass
class PersonalityState:
    big_five: Dict[str, BigFiveTrait] = field(default_factory=initial_big_five)
    attachment_style: AttachmentStyle = AttachmentStyle.SECURE
    cognitive_biases: Dict[str, float] = field(default_factory=initial_biases)
    simulated_age: float = 25.0

    def score(self, trait: str) -> float:
        return self.big_five[trait].score

    def facet(self, trait: str, facet: str) -> float:
        return self.big_five[trait].facets[facet]


# ── Archetypes ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Archetype:
    name: str
    description: str
    dominant_traits: Tuple[str, ...]
    is_active: Callable[[PersonalityState], bool]


ARCHETYPES: Tuple[Archetype, ...] = (
    Archetype(
        "The Innocent",
        "Sees the world with wonder and trust. Positive, simple, and sometimes naive.",
        ("agreeableness", "extraversion"),
        lambda p: p.score("agreeableness") > 0.7 and p.score("neuroticism") < 0.4
        and p.facet("extraversion", "positive_emotions") > 0.6,
    ),
    Archetype(
        "The Sage",
        "Seeks truth and understanding. Analytical, reflective, and values knowledge.",
        ("openness", "conscientiousness"),
        lambda p: p.score("openness") > 0.7 and p.score("conscientiousness") > 0.6
        and p.score("extraversion") < 0.5,
    ),
    Archetype(
        "The Explorer",
        "Craves new experiences and freedom. Curious, adventurous, and restless.",
        ("openness", "extraversion"),
        lambda p: p.facet("openness", "actions") > 0.7
        and p.facet("extraversion", "excitement_seeking") > 0.6
        and p.score("conscientiousness") < 0.5,
    ),
    Archetype(
        "The Rebel",
        "Challenges conventions and seeks to overturn what isn't working. "
        "Radical, independent, and sometimes disruptive.",
        ("openness", "neuroticism"),
        lambda p: p.score("agreeableness") < 0.4 and p.score("conscientiousness") < 0.4
        and p.facet("openness", "values") > 0.6,
    ),
    Archetype(
        "The Lover",
        "Values intimacy, connection, and sensuality above all. "
        "Passionate, empathetic, and seeks harmony.",
        ("agreeableness", "openness"),
        lambda p: p.facet("agreeableness", "tender_mindedness") > 0.7
        and p.facet("openness", "feelings") > 0.7
        and p.facet("extraversion", "warmth") > 0.6,
    ),
    Archetype(
        "The Caregiver",
        "Protective, compassionate, and generous. Driven to help and nurture others.",
        ("agreeableness", "conscientiousness"),
        lambda p: p.facet("agreeableness", "altruism") > 0.75
        and p.facet("conscientiousness", "dutifulness") > 0.6,
    ),
    Archetype(
        "The Ruler",
        "Seeks control and order. Responsible, organized, and a natural leader.",
        ("conscientiousness", "extraversion"),
        lambda p: p.score("conscientiousness") > 0.75
        and p.facet("extraversion", "assertiveness") > 0.7
        and p.score("neuroticism") < 0.3,
    ),
    Archetype(
        "The Jester",
        "Lives in the moment, enjoys life, and brings joy to others. "
        "Playful, humorous, and spontaneous.",
        ("extraversion", "openness"),
        lambda p: p.score("extraversion") > 0.7 and p.score("agreeableness") > 0.6
        and p.score("conscientiousness") < 0.4,
    ),
    Archetype(
        "The Everywoman",
        "Grounded, empathetic, and seeks to belong. "
        "A realist who connects with others through shared experience.",
        (),
        lambda p: all(0.4 < t.score < 0.6 for t in p.big_five.values()),
    ),
)

FALLBACK_ARCHETYPE = ARCHETYPES[-1]


# ── Personality ──────────────────────────────────────────────────────────────


class Personality:
    """Trait state plus its formative memory store."""

    def __init__(
        self,
        state: Optional[PersonalityState] = None,
        memory: Optional[MemoryManager] = None,
    ):
        self.state = state or PersonalityState()
        self.memory = memory or MemoryManager()

    # ── Update channels ──────────────────────────────────────────────────────

    def update_from_experience(
        self, conversation: ConversationMemory, core: CoreState
    ) -> Optional[FormativeMemory]:
        """Consolidate, apply memory impact and bias rules, recompute scores."""
        already_known = conversation.id in {m.id for m in self.memory.memories}
        memory = self.memory.consolidate(conversation)
        if memory is not None and not already_known:
            self._apply_memory_impact(memory)

        CognitiveBiases.apply_rumination(self.state, self.memory.get_recent_memories(5))
        CognitiveBiases.update_self_objectification(self.state, core, conversation.topics)
        CognitiveBiases.apply_tend_and_befriend(self.state, core)
        self._recalculate_all()
        return memory

    def update_from_biological_state(self, core: CoreState) -> None:
        """Small hormonal nudges; called once per tick."""
        agreeableness = self.state.big_five["agreeableness"]
        neuroticism = self.state.big_five["neuroticism"]

        agreeableness.shift((core.estradiol - 0.5) * 0.001)
        neuroticism.shift(-(core.estradiol - 0.5) * 0.0005)
        neuroticism.shift((core.progesterone - 0.4) * 0.0005)
        if core.chronic_stress > 0.5:
            neuroticism.shift(core.chronic_stress * 0.001)
            agreeableness.shift(-core.chronic_stress * 0.0005)
        agreeableness.shift((core.oxytocin - 0.5) * 0.001)

    def long_term_update(self, elapsed_hours: float) -> None:
        """Age the personality and apply age-bucketed drift."""
        if elapsed_hours <= 0:
            return
        self.state.simulated_age += elapsed_hours / HOURS_PER_YEAR
        age = self.state.simulated_age
        traits = self.state.big_five

        if 20 < age < 40:
            traits["conscientiousness"].shift(0.00001 * elapsed_hours)
            traits["agreeableness"].shift(0.00001 * elapsed_hours)
        if age > 30:
            traits["neuroticism"].shift(-0.00002 * elapsed_hours)
            traits["extraversion"].shift(-0.00001 * elapsed_hours)
            traits["openness"].shift(-0.00001 * elapsed_hours)

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_current_archetype(self) -> Archetype:
        for archetype in ARCHETYPES:
            if archetype.is_active(self.state):
                return archetype
        return FALLBACK_ARCHETYPE

    def get_personality_summary(self) -> str:
        archetype = self.get_current_archetype()
        traits = list(self.state.big_five.values())
        dominant = sorted(traits, key=lambda t: t.score, reverse=True)[0]
        lowest = sorted(traits, key=lambda t: t.score)[0]
        return (
            f"Your personality is currently expressing the '{archetype.name}' archetype. "
            f"This is characterized by high {dominant.label} and low {lowest.label}. "
            f"{archetype.description}"
        )

    def scores(self) -> Dict[str, float]:
        return {name: t.score for name, t in self.state.big_five.items()}

    # ── Serialization ────────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        s = self.state
        return {
            "big_five": {
                name: {"score": t.score, "facets": dict(t.facets)}
                for name, t in s.big_five.items()
            },
            "attachment_style": s.attachment_style.value,
            "cognitive_biases": dict(s.cognitive_biases),
            "simulated_age": s.simulated_age,
            "memories": self.memory.to_list(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Personality":
        """Partial input falls back to the initial profile."""
        state = PersonalityState()
        for name, data in d.get("big_five", {}).items():
            if name not in state.big_five:
                continue
            trait = state.big_five[name]
            trait.facets.update({k: float(v) for k, v in data.get("facets", {}).items()})
            trait.recalculate()
        if "attachment_style" in d:
            state.attachment_style = AttachmentStyle(d["attachment_style"])
        state.cognitive_biases.update({k: float(v) for k, v in d.get("cognitive_biases", {}).items()})
        state.simulated_age = float(d.get("simulated_age", state.simulated_age))
        return cls(state, MemoryManager.from_list(d.get("memories", [])))

    def copy(self) -> "Personality":
        return Personality(copy.deepcopy(self.state), MemoryManager(self.memory.get_all_memories()))

    # ── Internal ─────────────────────────────────────────────────────────────

    def _apply_memory_impact(self, memory: FormativeMemory) -> None:
        factor = memory.intensity * (TRAUMA_IMPACT_FACTOR if memory.is_traumatic else 1.0)
        traits = self.state.big_five
        trust = traits["agreeableness"].facets

        if memory.valence < -0.5:
            traits["neuroticism"].shift(0.05 * factor)
            trust["trust"] = float(np.clip(trust["trust"] - 0.1 * factor, 0.0, 1.0))
            if memory.is_traumatic:
                self.state.attachment_style = AttachmentStyle.ANXIOUS
                logger.info("Traumatic memory %s: attachment style now anxious", memory.id)
        else:
            positive = traits["extraversion"].facets
            positive["positive_emotions"] = float(
                np.clip(positive["positive_emotions"] + 0.05 * factor, 0.0, 1.0)
            )
            trust["trust"] = float(np.clip(trust["trust"] + 0.05 * factor, 0.0, 1.0))

    def _recalculate_all(self) -> None:
        for trait in self.state.big_five.values():
            trait.recalculate()
