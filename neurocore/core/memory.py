# ═══════════════════════════════════════════════════════════════════════════════
# PART 8: FORMATIVE & AFFECTIVE MEMORY
# Design: significance-gated consolidation + hash-chained record
# Implementation: State Management
# ═══════════════════════════════════════════════════════════════════════════════

"""
Two memory stores:

- MemoryManager holds formative memories: the few interactions significant
  enough to shape personality. Consolidation is the only way in, and it is
  idempotent per conversation id. Entries form a hash chain so a restored
  buffer can be checked for tampering.
- encode_affective_memory() builds the per-interaction trace stored on the
  CoreState itself (AffectiveMemory, bounded at 200).
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from neurocore.core.state import AffectiveMemory, CoreState, MemoryType

logger = logging.getLogger(__name__)

MEMORY_CAPACITY = 100
SUMMARY_PART_LIMIT = 50
RETRIEVAL_THRESHOLD = 0.1


class Sentiment(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    PLAYFUL = "playful"
    INTIMATE = "intimate"
    VULNERABLE = "vulnerable"
    DOCUMENT_STUDY = "document_study"


SENTIMENT_VALENCE: Dict[Sentiment, float] = {
    Sentiment.POSITIVE: 0.8,
    Sentiment.PLAYFUL: 0.8,
    Sentiment.INTIMATE: 0.8,
    Sentiment.VULNERABLE: -0.2,
    Sentiment.NEGATIVE: -0.8,
    Sentiment.NEUTRAL: 0.0,
    Sentiment.DOCUMENT_STUDY: 0.0,
}


@dataclass
class ConversationMemory:
    """One exchange, as reported by the conversation layer."""
    id: str
    timestamp: float
    user_input: str
    core_response: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    emotional_intensity: float = 0.0
    topics: List[str] = field(default_factory=list)
    context: Dict[str, float] = field(default_factory=dict)   # cortisol, arousal


@dataclass
class FormativeMemory:
    id: str
    timestamp: float
    summary: str
    valence: float
    arousal: float
    intensity: float
    is_traumatic: bool = False
    associated_traits: List[str] = field(default_factory=list)
    parent_hash: str = ""              # hash this entry was chained to
    hash: str = ""

    def content(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "summary": self.summary,
            "valence": self.valence,
            "arousal": self.arousal,
            "intensity": self.intensity,
            "is_traumatic": self.is_traumatic,
            "associated_traits": list(self.associated_traits),
        }

    def to_dict(self) -> dict:
        return {**self.content(), "parent_hash": self.parent_hash, "hash": self.hash}

    @classmethod
    def from_dict(cls, d: dict) -> "FormativeMemory":
        return cls(
            id=d["id"],
            timestamp=float(d["timestamp"]),
            summary=d.get("summary", ""),
            valence=float(d.get("valence", 0.0)),
            arousal=float(d.get("arousal", 0.0)),
            intensity=float(d.get("intensity", 0.0)),
            is_traumatic=bool(d.get("is_traumatic", False)),
            associated_traits=list(d.get("associated_traits", [])),
            parent_hash=d.get("parent_hash", ""),
            hash=d.get("hash", ""),
        )


def _truncate(text: str) -> str:
    if len(text) > SUMMARY_PART_LIMIT:
        return text[:SUMMARY_PART_LIMIT - 3] + "..."
    return text


def summarize_interaction(user_input: str, core_response: str) -> str:
    return f'User: "{_truncate(user_input)}" | Core: "{_truncate(core_response)}"'


def _chain_hash(previous: str, memory: FormativeMemory) -> str:
    payload = previous + json.dumps(memory.content(), sort_keys=True)
    return hashlib.sha256(payload.encode()).hexdigest()


class MemoryManager:
    """Bounded, hash-chained store of formative memories."""

    def __init__(self, memories: Optional[Sequence[FormativeMemory]] = None):
        self.memories: List[FormativeMemory] = list(memories or [])[-MEMORY_CAPACITY:]
        self._by_id: Dict[str, FormativeMemory] = {m.id: m for m in self.memories}

    # ── Properties ───────────────────────────────────────────────────────────

    @property
    def head_hash(self) -> str:
        return self.memories[-1].hash if self.memories else ""

    def __len__(self) -> int:
        return len(self.memories)

    # ── Public Methods ───────────────────────────────────────────────────────

    def is_significant(self, conversation: ConversationMemory) -> bool:
        cortisol = conversation.context.get("cortisol", 0.0)
        return conversation.emotional_intensity > 0.8 or (
            conversation.sentiment == Sentiment.NEGATIVE and cortisol > 0.75
        )

    def consolidate(self, conversation: ConversationMemory) -> Optional[FormativeMemory]:
        """
        Store the conversation if it is significant.

        Returns the new memory, the existing one if this id was already
        consolidated, or None if the exchange is not significant.
        """
        existing = self._by_id.get(conversation.id)
        if existing is not None:
            return existing
        if not self.is_significant(conversation):
            return None

        cortisol = conversation.context.get("cortisol", 0.0)
        memory = FormativeMemory(
            id=conversation.id,
            timestamp=conversation.timestamp,
            summary=summarize_interaction(conversation.user_input, conversation.core_response),
            valence=SENTIMENT_VALENCE.get(conversation.sentiment, 0.0),
            arousal=conversation.context.get("arousal", 0.0),
            intensity=conversation.emotional_intensity,
            is_traumatic=cortisol > 0.85 and conversation.emotional_intensity > 0.85,
        )
        memory.parent_hash = self.head_hash
        memory.hash = _chain_hash(memory.parent_hash, memory)
        self._add(memory)
        logger.info("Consolidated formative memory %s (valence %.1f, traumatic=%s)",
                    memory.id, memory.valence, memory.is_traumatic)
        return memory

    def retrieve_relevant_memories(self, topics: Sequence[str]) -> List[FormativeMemory]:
        wanted = set(topics)
        return [m for m in self.memories if wanted.intersection(m.summary.lower().split(" "))]

    def get_recent_memories(self, count: int) -> List[FormativeMemory]:
        if count <= 0:
            return []
        return self.memories[-count:]

    def get_traumatic_memories(self) -> List[FormativeMemory]:
        return [m for m in self.memories if m.is_traumatic]

    def get_all_memories(self) -> List[FormativeMemory]:
        return list(self.memories)

    def verify(self) -> bool:
        """
        Check the hash chain.

        Every entry must hash to its stored value from its recorded parent,
        and each parent must be the hash of the entry before it. The first
        retained entry may point at an evicted one.
        """
        for memory in self.memories:
            if not memory.hash or memory.hash != _chain_hash(memory.parent_hash, memory):
                return False
        return all(
            memory.parent_hash == prev.hash
            for prev, memory in zip(self.memories, self.memories[1:])
        )

    def to_list(self) -> List[dict]:
        return [m.to_dict() for m in self.memories]

    @classmethod
    def from_list(cls, items: Sequence[dict]) -> "MemoryManager":
        memories: List[FormativeMemory] = []
        for d in items:
            memory = FormativeMemory.from_dict(d)
            # Entries saved without a parent field chain to the one before
            if "parent_hash" not in d and memories:
                memory.parent_hash = memories[-1].hash
            memories.append(memory)
        return cls(memories)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _add(self, memory: FormativeMemory) -> None:
        self.memories.append(memory)
        self._by_id[memory.id] = memory
        if len(self.memories) > MEMORY_CAPACITY:
            evicted = self.memories.pop(0)
            self._by_id.pop(evicted.id, None)


# ── Affective traces ─────────────────────────────────────────────────────────


def affective_valence(state: CoreState) -> float:
    """Emotional valence of a state, in [-1, 1]."""
    raw = (state.felicita - state.tristezza) + (state.amore - state.paura)
    return float(np.clip(raw, -1.0, 1.0))


def encode_affective_memory(
    state: CoreState,
    stimulus_text: str,
    core_response: str,
    now_ms: float,
    procedural: bool = False,
) -> Optional[AffectiveMemory]:
    """
    Build an affective trace for an interaction, or None if it is mundane
    (low salience and near-neutral valence).
    """
    valence = affective_valence(state)
    salience = max(state.cortisol, state.dopamine, state.endorphin_rush, state.arousal)
    if salience < 0.3 and abs(valence) < 0.3:
        return None

    if salience > 0.9 and abs(valence) > 0.8:
        memory_type = MemoryType.FLASHBULB
    elif procedural:
        memory_type = MemoryType.PROCEDURAL
    elif salience < 0.1:
        memory_type = MemoryType.IMPLICIT
    else:
        memory_type = MemoryType.LONG_TERM_EPISODIC

    return AffectiveMemory(
        id=uuid.uuid4().hex,
        timestamp=float(now_ms),
        stimulus_text=stimulus_text,
        core_response=core_response,
        response={
            "dopamine": state.dopamine,
            "oxytocin": state.oxytocin,
            "cortisol": state.cortisol,
            "endorphin_rush": state.endorphin_rush,
        },
        valence=valence,
        salience=float(np.clip(salience, 0.0, 1.0)),
        memory_type=memory_type,
        is_trauma=False,
        is_repressed=state.cortisol > 0.85 and valence < -0.7,
    )


def text_similarity(a: str, b: str) -> float:
    """Jaccard similarity of lowercase word sets."""
    if not a or not b:
        return 0.0
    set_a = set(a.lower().split(" "))
    set_b = set(b.lower().split(" "))
    union = set_a | set_b
    return len(set_a & set_b) / len(union) if union else 0.0


def retrieve_affective_memories(
    memories: Sequence[AffectiveMemory],
    text: str,
    context: CoreState,
) -> List[Tuple[AffectiveMemory, float]]:
    """
    Rank affective traces by text similarity and emotional congruence.

    Repressed traces surface only on a strong match.
    """
    if not text:
        return []
    context_valence = (context.felicita - context.tristezza) + (context.amore - context.paura)
    ranked = []
    for memory in memories:
        similarity = text_similarity(text, memory.stimulus_text)
        congruence = 1.0 - abs(memory.valence - context_valence) / 2.0
        repression = 1.0
        if memory.is_repressed and not (congruence > 0.8 and similarity > 0.5):
            repression = 0.1
        relevance = (similarity * 0.6 + congruence * 0.4) * repression * memory.salience
        if relevance > RETRIEVAL_THRESHOLD:
            ranked.append((memory, relevance))
    ranked.sort(key=lambda item: item[1], reverse=True)
    return ranked
