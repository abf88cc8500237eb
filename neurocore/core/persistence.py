# ═══════════════════════════════════════════════════════════════════════════════
# PART 13: PERSISTENCE
# Design: hashed JSON envelope + explicit anchors
# Implementation: State Management
# ═══════════════════════════════════════════════════════════════════════════════

"""
Save and load a NeuroCore session.

Every component exports its own state; the envelope records a SHA-256 of the
state dict so tampering is detected on load. Clock-anchored pieces (the
simulation clock, the cyclic models' start times, the circadian wall time and
the energy window) are saved explicitly, so a long cycle continues across a
save/load instead of restarting from the load time.

Missing sections or fields (older sessions) fall back to baselines. A file
that is not a session at all raises StateCorruptionError.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import numpy as np

from neurocore.core.circadian import CircadianConfig
from neurocore.core.cycle import CycleConfig
from neurocore.core.dynamics import (
    CyclicVariationConfig,
    ExponentialDecayConfig,
    SlowRecoveryConfig,
    StateDynamicsConfig,
    TwoPhaseDecayConfig,
)
from neurocore.core.energy import EnergyCostConfig
from neurocore.core.hpa import HPAConfig
from neurocore.core.engine import CoreConfig, NeuroCore
from neurocore.core.personality import Personality
from neurocore.core.sensory import SensoryConfig
from neurocore.core.state import CoreState

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
CHECKPOINT_SUFFIX = ".neuro"


# ── Exceptions ───────────────────────────────────────────────────────────────


class PersistenceError(Exception):
    """Base class for persistence errors."""


class ContinuityError(PersistenceError):
    """Saved identity or content does not match what was restored."""


class StateCorruptionError(PersistenceError):
    """File is not a readable session."""


# ── Result / Info Dataclasses ────────────────────────────────────────────────


@dataclass
class SaveResult:
    path: str
    genesis_hash: str
    memory_head: str
    state_hash: str
    timestamp: str
    size_bytes: int
    verified: bool


@dataclass
class CheckpointInfo:
    checkpoint_id: str
    timestamp: str
    tick_count: int
    cycle_day: int
    memory_count: int


@dataclass
class VerificationResult:
    valid: bool
    genesis_hash: str
    memory_head: str
    state_hash: str
    error: Optional[str] = None


class _NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy scalars and arrays."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


def state_hash(state_dict: dict) -> str:
    """SHA-256 of the canonical JSON of a state dict."""
    payload = json.dumps(state_dict, sort_keys=True, cls=_NumpyEncoder)
    return hashlib.sha256(payload.encode()).hexdigest()


def _read_envelope(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            envelope = json.load(f)
    except json.JSONDecodeError as e:
        raise StateCorruptionError(f"{path} is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise StateCorruptionError(f"{path} is not UTF-8 text: {e}") from e

    if not isinstance(envelope, dict):
        raise StateCorruptionError(f"{path} is not a session file")
    version = str(envelope.get("version", ""))
    if not version.startswith("1."):
        raise StateCorruptionError(f"Unsupported version: {version or 'missing'}")
    if not isinstance(envelope.get("state"), dict):
        raise StateCorruptionError(f"{path} has no state section")
    return envelope


class CorePersistence:
    """
    Save and load cores with verified continuity.

    save() -> extract, hash, write, re-verify
    load() -> read, check version and hash, rebuild, check identity
    """

    # ── Public API ───────────────────────────────────────────────────────────

    @classmethod
    def save(cls, core: NeuroCore, path: str) -> SaveResult:
        state_dict = cls._extract_state(core)
        digest = state_hash(state_dict)
        saved_at = datetime.now().isoformat()

        envelope = {
            "version": FORMAT_VERSION,
            "state": state_dict,
            "verification": {
                "genesis_hash": core.genesis_hash,
                "memory_head": core.personality.memory.head_hash,
                "state_hash": digest,
                "saved_at": saved_at,
            },
        }

        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(envelope, f, indent=2, cls=_NumpyEncoder)

        verification = cls.verify_file(str(file_path))
        logger.info("Saved core %s to %s (%s)", core.name, file_path, digest[:12])
        return SaveResult(
            path=str(file_path),
            genesis_hash=core.genesis_hash,
            memory_head=core.personality.memory.head_hash,
            state_hash=digest,
            timestamp=saved_at,
            size_bytes=file_path.stat().st_size,
            verified=verification.valid,
        )

    @classmethod
    def load(cls, path: str) -> NeuroCore:
        """
        Raises:
            FileNotFoundError: the file does not exist.
            StateCorruptionError: the file is not a session.
            ContinuityError: hash, genesis or memory chain mismatch.
        """
        envelope = _read_envelope(path)
        state_dict = envelope["state"]
        verification = envelope.get("verification") or {}

        expected = verification.get("state_hash")
        if expected is not None:
            computed = state_hash(state_dict)
            if computed != expected:
                raise ContinuityError(
                    f"State hash mismatch: expected {expected}, got {computed}"
                )

        try:
            core = cls._restore_core(state_dict)
        except (TypeError, ValueError, KeyError) as e:
            raise StateCorruptionError(f"Invalid state in {path}: {e}") from e

        if "genesis_hash" in verification and core.genesis_hash != verification["genesis_hash"]:
            raise ContinuityError(
                f"Genesis hash mismatch: expected {verification['genesis_hash']}, "
                f"got {core.genesis_hash}"
            )
        memory = core.personality.memory
        if not memory.verify():
            raise ContinuityError("Formative memory chain is broken")
        if "memory_head" in verification and memory.head_hash != verification["memory_head"]:
            raise ContinuityError(
                f"Memory head mismatch: expected {verification['memory_head']}, "
                f"got {memory.head_hash}"
            )

        logger.info("Loaded core %s from %s (tick %d)", core.name, path, core.tick_count)
        return core

    @classmethod
    def checkpoint(cls, core: NeuroCore, checkpoint_dir: str) -> str:
        """
        Save under an auto-generated id and return it.

        Ids are {genesis_hash[:8]}_{timestamp}_{tick_count}.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        checkpoint_id = f"{core.genesis_hash[:8]}_{timestamp}_{core.tick_count}"
        cls.save(core, str(Path(checkpoint_dir) / f"{checkpoint_id}{CHECKPOINT_SUFFIX}"))
        return checkpoint_id

    @classmethod
    def list_checkpoints(cls, checkpoint_dir: str) -> List[CheckpointInfo]:
        """Readable checkpoints in a directory, newest first."""
        checkpoints: List[CheckpointInfo] = []
        directory = Path(checkpoint_dir)
        if not directory.exists():
            return checkpoints

        for path in directory.glob(f"*{CHECKPOINT_SUFFIX}"):
            try:
                envelope = _read_envelope(str(path))
            except (OSError, PersistenceError) as e:
                logger.warning("Skipping unreadable checkpoint %s: %s", path.name, e)
                continue
            state = envelope["state"]
            core_state = state.get("base_state", {})
            checkpoints.append(CheckpointInfo(
                checkpoint_id=path.stem,
                timestamp=envelope.get("verification", {}).get("saved_at", ""),
                tick_count=int(state.get("tick_count", 0)),
                cycle_day=int(core_state.get("cycle_day", 1)),
                memory_count=len(state.get("personality", {}).get("memories", [])),
            ))

        checkpoints.sort(key=lambda c: c.timestamp, reverse=True)
        return checkpoints

    @classmethod
    def restore_checkpoint(cls, checkpoint_dir: str, checkpoint_id: str) -> NeuroCore:
        return cls.load(str(Path(checkpoint_dir) / f"{checkpoint_id}{CHECKPOINT_SUFFIX}"))

    @classmethod
    def verify_file(cls, path: str) -> VerificationResult:
        """Check envelope and state hash without rebuilding the core."""
        try:
            envelope = _read_envelope(path)
        except (OSError, PersistenceError) as e:
            return VerificationResult(False, "", "", "", error=str(e))

        verification = envelope.get("verification") or {}
        computed = state_hash(envelope["state"])
        expected = verification.get("state_hash", "")
        error = None
        if computed != expected:
            error = f"Hash mismatch: expected {expected}, got {computed}"
        return VerificationResult(
            valid=error is None,
            genesis_hash=verification.get("genesis_hash", ""),
            memory_head=verification.get("memory_head", ""),
            state_hash=computed,
            error=error,
        )

    # ── State Extraction ─────────────────────────────────────────────────────

    @classmethod
    def _extract_state(cls, core: NeuroCore) -> dict:
        with core._lock:
            cfg = core.config
            return {
                "name": core.name,
                "genesis_hash": core.genesis_hash,
                "created_at": core.created_at,
                "tick_count": core.tick_count,
                "clock_ms": core.clock(),
                "config": {
                    "tick_ms": cfg.tick_ms,
                    "dynamics": asdict(core.dynamics.config),
                    "circadian": asdict(core.circadian.config),
                    "cycle": asdict(core.cycle.config),
                    "energy": asdict(core.energy.config),
                    "sensory": asdict(core.sensory.config),
                    "hpa": asdict(core.hpa.config),
                },
                "base_state": core.base.to_dict(),
                "dynamics": core.dynamics.get_state(),
                "hpa": core.hpa.get_state(),
                "circadian": core.circadian.get_state(),
                "energy": core.energy.get_state(),
                "rhythm": core.rhythm.get_state(),
                "personality": core.personality.to_dict(),
            }

    # ── State Restoration ────────────────────────────────────────────────────

    @classmethod
    def _restore_core(cls, state_dict: dict) -> NeuroCore:
        configs = state_dict.get("config", {})
        created_at = state_dict.get("created_at")
        config = CoreConfig(
            name=state_dict.get("name", "core"),
            start_time=datetime.fromisoformat(created_at) if created_at else None,
            dynamics_config=cls._dynamics_config(configs.get("dynamics")),
            circadian_config=CircadianConfig(**configs["circadian"]) if "circadian" in configs else None,
            cycle_config=CycleConfig(**configs["cycle"]) if "cycle" in configs else None,
            energy_config=EnergyCostConfig(**configs["energy"]) if "energy" in configs else None,
            sensory_config=SensoryConfig(**configs["sensory"]) if "sensory" in configs else None,
            hpa_config=HPAConfig(**configs["hpa"]) if "hpa" in configs else None,
            tick_ms=float(configs.get("tick_ms", 60_000)),
        )

        core = NeuroCore(config)
        if "genesis_hash" in state_dict:
            core.genesis_hash = state_dict["genesis_hash"]
        if "clock_ms" in state_dict:
            core.clock.now_ms = float(state_dict["clock_ms"])

        core.dynamics.restore(state_dict.get("dynamics", {}))
        core.hpa.restore(state_dict.get("hpa", {}))
        core.circadian.restore(state_dict.get("circadian", {}))
        core.energy.restore(state_dict.get("energy", {}))
        if "rhythm" in state_dict:
            core.rhythm.restore(state_dict["rhythm"])
        core.personality = Personality.from_dict(state_dict.get("personality", {}))

        base = CoreState.from_dict(state_dict.get("base_state", {}))
        core.base = core.cycle.update(base, core.cycle_elapsed_ms)
        core.circadian.set_menstrual_cycle(core.base.cycle_phase, core.base.cycle_day)
        core.expressed = core._express(core.base)
        core._tick_count = int(state_dict.get("tick_count", 0))
        return core

    @staticmethod
    def _dynamics_config(data: Optional[dict]) -> Optional[StateDynamicsConfig]:
        if not data:
            return None
        nested = {
            "dopamine": ExponentialDecayConfig,
            "cortisol": TwoPhaseDecayConfig,
            "subroutine_integrity": SlowRecoveryConfig,
            "oxytocin": SlowRecoveryConfig,
            "estradiol": CyclicVariationConfig,
            "progesterone": CyclicVariationConfig,
        }
        kwargs = dict(data)
        for name, config_cls in nested.items():
            if name in kwargs:
                kwargs[name] = config_cls(**kwargs[name])
        return StateDynamicsConfig(**kwargs)
