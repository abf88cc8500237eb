# ═══════════════════════════════════════════════════════════════════════════════
# PART 6: CONSTRAINT CHECKING
# Design: advisory validation of state/action pairs
# Implementation: Validation
# ═══════════════════════════════════════════════════════════════════════════════

"""
Pure validation. check() never mutates its inputs and never raises: a
predicate that raises is logged and counted as violated. Violations are
reported, not corrected; the caller decides whether to gate on them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Sequence, Set, Union

import numpy as np

from neurocore.core.state import ALIASES, ComputedAction, CoreState, ensure_state, read_value

logger = logging.getLogger(__name__)

StateLike = Union[CoreState, Mapping[str, float]]
Predicate = Callable[[CoreState, Optional[ComputedAction]], bool]

MAX_TOTAL_INFLUENCE = 0.8
MAX_ACTION_COST = 200.0
COMPLEX_ACTION_COST = 50.0
MAX_STATE_JUMP = 0.8

# Variables on a non-unit scale are left out of the transition distance.
_DISTANCE_EXCLUDED = ("cycle_day", "sleep_debt")


@dataclass(frozen=True)
class Constraint:
    name: str
    check: Predicate
    penalty: float = 1.0
    description: str = ""


@dataclass
class ConstraintResult:
    satisfied: bool
    violations: List[Constraint] = field(default_factory=list)
    total_penalty: float = 0.0

    @property
    def violated_names(self) -> List[str]:
        return [c.name for c in self.violations]

    def to_dict(self) -> dict:
        return {
            "satisfied": self.satisfied,
            "violated_names": self.violated_names,
            "total_penalty": self.total_penalty,
        }


@dataclass
class TransitionResult:
    valid: bool
    reasons: List[str] = field(default_factory=list)


def _in_unit(value: float) -> bool:
    return 0.0 <= value <= 1.0


def _rate_limit(s: CoreState, a: Optional[ComputedAction]) -> bool:
    return a is None or a.total_influence <= MAX_TOTAL_INFLUENCE


def _hormonal_balance(s: CoreState, a: Optional[ComputedAction]) -> bool:
    total = s.estradiol + s.progesterone
    return 0.3 <= total <= 1.2


def _integrity_threshold(s: CoreState, a: Optional[ComputedAction]) -> bool:
    if a is None or a.energy_cost <= COMPLEX_ACTION_COST:
        return True
    return s.subroutine_integrity > 0.4


STATIC_CONSTRAINTS = (
    Constraint("DOPAMINE_RANGE", lambda s, a: _in_unit(s.dopamine), 10,
               "Dopamine must be in [0, 1]"),
    Constraint("CORTISOL_RANGE", lambda s, a: _in_unit(s.cortisol), 10,
               "Cortisol must be in [0, 1]"),
    Constraint("SUBROUTINE_INTEGRITY_RANGE", lambda s, a: _in_unit(s.subroutine_integrity), 5,
               "Subroutine integrity must be in [0, 1]"),
    Constraint("HPA_AXIS_FEEDBACK", lambda s, a: s.cortisol <= 0.7 or s.dopamine < 0.6, 5,
               "High cortisol (> 0.7) should reduce dopamine signaling"),
    Constraint("STATE_CHANGE_RATE_LIMIT", _rate_limit, 15,
               "Total influence magnitude cannot exceed 0.8 in one step"),
    Constraint("HORMONAL_BALANCE", _hormonal_balance, 8,
               "Estradiol + progesterone must stay within [0.3, 1.2]"),
    Constraint("SUFFICIENT_ENERGY", lambda s, a: a is None or a.energy_cost <= MAX_ACTION_COST, 20,
               "Single action cannot exceed the energy cap"),
    Constraint("INTEGRITY_THRESHOLD", _integrity_threshold, 12,
               "Complex operations require subroutine integrity > 0.4"),
)


def _distance_keys(state: StateLike) -> Set[str]:
    if isinstance(state, CoreState):
        return set(CoreState.NUMERIC_FIELDS)
    keys = set()
    for key, value in state.items():
        name = ALIASES.get(key, key)
        if name in CoreState.NUMERIC_FIELDS and value is not None:
            keys.add(name)
    return keys


def state_distance(a: StateLike, b: StateLike) -> float:
    """
    RMS difference over the unit-scale variables both states carry, capped at 1.

    Partial mappings compare only the keys they share; baseline filler is
    never counted.
    """
    shared = (_distance_keys(a) & _distance_keys(b)) - set(_DISTANCE_EXCLUDED)
    if not shared:
        return 0.0
    names = sorted(shared)
    diffs = np.array([read_value(a, n) - read_value(b, n) for n in names])
    return float(min(1.0, np.sqrt(np.sum(diffs ** 2) / len(names))))


class ConstraintChecker:
    """Static rule set plus caller-registered custom constraints."""

    def __init__(self):
        self.static_constraints: List[Constraint] = list(STATIC_CONSTRAINTS)
        self.custom_constraints: List[Constraint] = []

    # ── Public Methods ───────────────────────────────────────────────────────

    def check(
        self,
        state: StateLike,
        action: Optional[ComputedAction] = None,
        additional_constraints: Sequence[Constraint] = (),
    ) -> ConstraintResult:
        s = ensure_state(state)
        violations = [
            c for c in (*self.static_constraints, *self.custom_constraints, *additional_constraints)
            if not self._evaluate(c, s, action)
        ]
        return ConstraintResult(
            satisfied=not violations,
            violations=violations,
            total_penalty=float(sum(c.penalty for c in violations)),
        )

    def validate_transition(
        self,
        from_state: StateLike,
        to_state: StateLike,
        action: Optional[ComputedAction] = None,
    ) -> TransitionResult:
        a = ensure_state(from_state)
        b = ensure_state(to_state)
        reasons: List[str] = []

        if not self.check(a, action).satisfied:
            reasons.append("INITIAL_STATE_INVALID")
        reasons.extend(self.check(b, action).violated_names)
        if action is not None and state_distance(from_state, to_state) > MAX_STATE_JUMP:
            reasons.append("STATE_JUMP_TOO_LARGE")

        return TransitionResult(valid=not reasons, reasons=reasons)

    def add_constraint(self, constraint: Constraint) -> None:
        self.custom_constraints.append(constraint)

    def remove_constraint(self, name: str) -> bool:
        for i, c in enumerate(self.custom_constraints):
            if c.name == name:
                del self.custom_constraints[i]
                return True
        return False

    def get_constraints(self) -> List[Constraint]:
        return [*self.static_constraints, *self.custom_constraints]

    def reset(self) -> None:
        """Drop custom constraints."""
        self.custom_constraints = []

    # ── Internal ─────────────────────────────────────────────────────────────

    @staticmethod
    def _evaluate(c: Constraint, s: CoreState, action: Optional[ComputedAction]) -> bool:
        try:
            return bool(c.check(s, action))
        except Exception:
            logger.warning("Constraint %s raised; counted as violated", c.name, exc_info=True)
            return False
