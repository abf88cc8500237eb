# ═══════════════════════════════════════════════════════════════════════════════
# PART 7: ENERGY BUDGET
# Design: state-modulated operation costs within a time window
# Implementation: Resource Accounting
# ═══════════════════════════════════════════════════════════════════════════════

"""
Operations cost energy. Costs are scaled by the current state (stress and
low integrity make work expensive, motivation and estradiol make it cheaper)
and drawn from a budget that refills when the window elapses.

expend() never deducts partially and never raises; exhaustion is returned
as a failed ExpendResult.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

from neurocore.core.dynamics import MsClock, wall_clock_ms
from neurocore.core.state import CoreState, read_value

logger = logging.getLogger(__name__)

INSUFFICIENT_ENERGY_BUDGET = "INSUFFICIENT_ENERGY_BUDGET"

DEFAULT_COSTS: Dict[str, float] = {
    "dynamics_computation": 10,
    "broadcast_operation": 25,
    "prediction_horizon_step": 5,
    "memory_consolidation": 30,
    "attentional_filtering": 15,
    "global_workspace_processing": 40,
}


@dataclass
class EnergyCostConfig:
    base_budget: float = 1000.0
    window_ms: float = 3_600_000          # 1 hour
    default_cost: float = 10.0
    costs: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_COSTS))


@dataclass
class ExpendResult:
    success: bool
    cost: float
    reason: Optional[str] = None


@dataclass
class EnergyStatus:
    available: float
    base_budget: float
    expended: float
    utilization: float
    window_remaining_ms: float


class EnergyCostTracker:
    """Windowed energy budget."""

    def __init__(self, config: Optional[EnergyCostConfig] = None, clock: Optional[MsClock] = None):
        self.config = config or EnergyCostConfig()
        self.clock = clock or wall_clock_ms
        if self.config.base_budget < 0:
            logger.warning("Negative budget %r clamped to 0", self.config.base_budget)
            self.config.base_budget = 0.0

        self.base_budget = float(self.config.base_budget)
        self.available = self.base_budget
        self.expended = 0.0
        self.window_start = self.clock()

    # ── Public Methods ───────────────────────────────────────────────────────

    def calculate_cost(
        self,
        action_type: str,
        state: Union[CoreState, Mapping[str, float], None] = None,
    ) -> float:
        """Base cost for action_type scaled by state, rounded up."""
        base = self.config.costs.get(action_type, self.config.default_cost)
        multiplier = 1.0

        cortisol = read_value(state, "cortisol")
        if cortisol is not None and cortisol > 0.7:
            multiplier *= 1 + (cortisol - 0.7) / 0.3 * 0.5

        dopamine = read_value(state, "dopamine")
        if dopamine is not None and dopamine > 0.6:
            multiplier *= 1 - (dopamine - 0.6) / 0.4 * 0.3

        estradiol = read_value(state, "estradiol")
        if estradiol is not None and estradiol > 0.5:
            multiplier *= 1 - (estradiol - 0.5) / 0.5 * 0.15

        integrity = read_value(state, "subroutine_integrity")
        if integrity is not None and integrity < 0.6:
            multiplier *= 1 + (0.6 - integrity) / 0.6 * 0.4

        return float(math.ceil(base * multiplier))

    def expend(
        self,
        action_type: str,
        state: Union[CoreState, Mapping[str, float], None] = None,
    ) -> ExpendResult:
        self._reset_window_if_needed()
        cost = self.calculate_cost(action_type, state)
        if self.available >= cost:
            self.available -= cost
            self.expended += cost
            return ExpendResult(success=True, cost=cost)
        logger.debug("Energy denied for %s: cost %.0f > available %.0f",
                     action_type, cost, self.available)
        return ExpendResult(success=False, cost=cost, reason=INSUFFICIENT_ENERGY_BUDGET)

    def replenish(self, amount: Optional[float] = None) -> None:
        """Explicit recovery; defaults to 10% of the budget, capped at the budget."""
        if amount is None:
            amount = self.base_budget * 0.1
        self.available = min(self.base_budget, self.available + max(0.0, amount))

    def get_status(self) -> EnergyStatus:
        self._reset_window_if_needed()
        return EnergyStatus(
            available=self.available,
            base_budget=self.base_budget,
            expended=self.expended,
            utilization=1.0 - self.available / self.base_budget if self.base_budget else 1.0,
            window_remaining_ms=self.config.window_ms - (self.clock() - self.window_start),
        )

    def adjust_budget(self, new_budget: float) -> None:
        """Change the budget, scaling available energy proportionally."""
        new_budget = max(0.0, float(new_budget))
        ratio = self.available / self.base_budget if self.base_budget else 1.0
        self.base_budget = new_budget
        self.available = new_budget * ratio

    def reset(self) -> None:
        self.available = self.base_budget
        self.expended = 0.0
        self.window_start = self.clock()

    def get_state(self) -> dict:
        return {
            "base_budget": self.base_budget,
            "available": self.available,
            "expended": self.expended,
            "window_start": self.window_start,
        }

    def restore(self, data: dict) -> None:
        self.base_budget = float(data.get("base_budget", self.base_budget))
        self.available = float(data.get("available", self.available))
        self.expended = float(data.get("expended", self.expended))
        self.window_start = float(data.get("window_start", self.window_start))

    # ── Internal ─────────────────────────────────────────────────────────────

    def _reset_window_if_needed(self) -> None:
        now = self.clock()
        if now - self.window_start >= self.config.window_ms:
            logger.info("Energy window elapsed; budget restored to %.0f", self.base_budget)
            self.available = self.base_budget
            self.expended = 0.0
            self.window_start = now
