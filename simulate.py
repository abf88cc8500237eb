#!/usr/bin/env python3
"""
Interactive driver for a NeuroCore.

Usage:
    # Fresh core, one-minute ticks:
    python simulate.py

    # Name the core and use five-minute ticks:
    python simulate.py --name Aurora --dt-min 5

    # Resume a saved session:
    python simulate.py --load sessions/aurora.json

    # Run 1440 ticks (one simulated day) and print the result:
    python simulate.py --ticks 1440 --batch

    # Show pipeline details:
    python simulate.py --log-level DEBUG

Plain text is recorded as a neutral conversational exchange.
"""

import argparse
import logging
import time
import uuid

from neurocore.core.circadian import CircadianConfig, SleepStage
from neurocore.core.engine import create_core
from neurocore.core.memory import ConversationMemory, Sentiment
from neurocore.core.persistence import CorePersistence, PersistenceError
from neurocore.core.state import ComputedAction, Stimulus, StimulusType, UnknownVariableError


def format_state(core):
    """Brief neurochemical summary."""
    s = core.state
    parts = [
        f"  Dopamine: {s.dopamine:.3f}  Cortisol: {s.cortisol:.3f}  Oxytocin: {s.oxytocin:.3f}",
        f"  Estradiol: {s.estradiol:.3f}  Progesterone: {s.progesterone:.3f}",
        f"  Integrity: {s.subroutine_integrity:.3f}  Melatonin: {s.melatonin:.3f}",
        f"  Cycle: day {s.cycle_day} ({s.cycle_phase.value})  Sleep debt: {s.sleep_debt:.1f}h",
        f"  Stress: acute {s.acute_stress:.3f}  chronic {s.chronic_stress:.3f}  CRH: {s.crh:.3f}",
        f"  Arousal: {s.intimate.arousal:.3f}  Habituation: {s.intimate.habituation:.3f}",
    ]
    return '\n'.join(parts)


def format_personality(core):
    personality = core.personality
    lines = [f"  {personality.get_personality_summary()}"]
    for name, score in personality.scores().items():
        lines.append(f"  {name:<18} {score:.3f}")
    lines.append(f"  Attachment: {personality.state.attachment_style.value}")
    lines.append(f"  Formative memories: {len(personality.memory)}")
    return '\n'.join(lines)


def parse_action(text):
    """'dopamine=0.2 cortisol=-0.1' -> ComputedAction."""
    influence = {}
    for item in text.split():
        name, _, value = item.partition("=")
        influence[name] = float(value)
    return ComputedAction(influence=influence)


HELP_TEXT = """
Commands:
  /help                        Show this help
  /state                       Neurochemical summary
  /witness                     Full status display
  /personality                 Traits and archetype

  /tick [n]                    Advance n ticks (default 1)
  /act name=delta ...          One tick with an action influence
  /stimulus <type> [pressure]  Apply a sensory stimulus
  /stress <0-1> [kind]         Acute stressor (physical, psychological, social)
  /talk <sentiment> <0-1> <text>
                               Record an exchange with explicit sentiment
  /sleep, /wake                Change sleep stage

  /energy                      Energy budget status
  /spend <action_type>         Request an expensive operation
  /check                       Last constraint check

  /save <path>                 Save the session
  /load <path>                 Load a session

  quit, exit                   End session
""".strip()


def handle_command(user_input, session):
    """Handle slash commands. Returns True if command was handled."""
    if not user_input.startswith("/"):
        return False

    core = session["core"]
    parts = user_input.split(None, 1)
    cmd = parts[0].lower()
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/help":
        print(f"\n{HELP_TEXT}\n")

    elif cmd == "/state":
        print(f"\n[State]\n{format_state(core)}\n")

    elif cmd == "/witness":
        print(core.witness())

    elif cmd == "/personality":
        print(f"\n[Personality]\n{format_personality(core)}\n")

    elif cmd == "/tick":
        count = int(arg) if arg.strip().isdigit() else 1
        result = core.run(count, session["dt_ms"])
        print(f"\n[Tick {result.tick}] +{count * session['dt_ms'] / 60000:.0f} min")
        print(f"{format_state(core)}\n")

    elif cmd == "/act":
        if not arg:
            print("\nUsage: /act name=delta ...\n")
        else:
            try:
                action = parse_action(arg)
            except (UnknownVariableError, ValueError) as e:
                print(f"\nError: {e}\n")
            else:
                result = core.tick(session["dt_ms"], action)
                print(f"\n[Tick {result.tick}] influence {action.total_influence:+.3f}")
                print(f"{format_state(core)}\n")

    elif cmd == "/stimulus":
        if not arg:
            print("\nUsage: /stimulus <type> [pressure]")
            print(f"Available: {', '.join(t.value for t in StimulusType)}\n")
        else:
            fields = arg.split()
            try:
                kind = StimulusType(fields[0])
            except ValueError:
                print(f"\nUnknown stimulus: {fields[0]}\n")
                return True
            pressure = float(fields[1]) if len(fields) > 1 else None
            result = core.apply_stimulus(Stimulus(kind, pressure=pressure))
            print(f"\n[{kind.value}] intensity {result.intensity:.3f}")
            if result.peak_release:
                print("  Peak release")
            print(f"  Arousal: {result.state.intimate.arousal:.3f}\n")

    elif cmd == "/stress":
        fields = arg.split()
        try:
            magnitude = float(fields[0])
        except (IndexError, ValueError):
            print("\nUsage: /stress <0-1> [physical|psychological|social]\n")
            return True
        kind = fields[1] if len(fields) > 1 else "psychological"
        state = core.apply_stress(magnitude, kind)
        print(f"\n[{kind} stressor {magnitude:.2f}]  CRH: {state.crh:.3f}")
        print(f"{format_state(core)}\n")

    elif cmd == "/talk":
        fields = arg.split(None, 2)
        if len(fields) < 3:
            print("\nUsage: /talk <sentiment> <intensity> <text>")
            print(f"Sentiments: {', '.join(s.value for s in Sentiment)}\n")
        else:
            try:
                sentiment = Sentiment(fields[0])
                intensity = float(fields[1])
            except ValueError as e:
                print(f"\nError: {e}\n")
                return True
            record(core, fields[2], sentiment, intensity)

    elif cmd == "/sleep":
        core.circadian.set_sleep_stage(SleepStage.NREM2)
        print("\n[Asleep]\n")

    elif cmd == "/wake":
        core.circadian.set_sleep_stage(SleepStage.AWAKE)
        print("\n[Awake]\n")

    elif cmd == "/energy":
        status = core.energy.get_status()
        print(f"\n[Energy] {status.available:.0f}/{status.base_budget:.0f}"
              f" ({status.utilization * 100:.0f}% used,"
              f" window resets in {status.window_remaining_ms / 60000:.0f} min)\n")

    elif cmd == "/spend":
        if not arg:
            print(f"\nUsage: /spend <action_type>")
            print(f"Known: {', '.join(core.energy.config.costs)}\n")
        else:
            result = core.request_operation(arg.strip())
            status = "OK" if result.success else f"DENIED ({result.reason})"
            print(f"\n[{arg.strip()}] cost {result.cost:.0f}: {status}\n")

    elif cmd == "/check":
        checked = core.last_constraints or core.checker.check(core.state)
        if checked.satisfied:
            print("\n[Constraints satisfied]\n")
        else:
            print(f"\n[{len(checked.violations)} violation(s)] penalty {checked.total_penalty:.1f}")
            for c in checked.violations:
                print(f"  {c.name}: {c.description}")
            print()

    elif cmd == "/save":
        if not arg:
            print("\nUsage: /save <path>\n")
        else:
            result = CorePersistence.save(core, arg.strip())
            print(f"\n[Saved] {result.path} ({result.size_bytes} bytes, verified={result.verified})\n")

    elif cmd == "/load":
        if not arg:
            print("\nUsage: /load <path>\n")
        else:
            try:
                session["core"] = CorePersistence.load(arg.strip())
            except (OSError, PersistenceError) as e:
                print(f"\nError: {e}\n")
            else:
                print(f"\n[Loaded] {session['core'].name} at tick {session['core'].tick_count}\n")

    else:
        print(f"\nUnknown command: {cmd}")
        print(f"Type /help for available commands.\n")

    return True


def record(core, text, sentiment=Sentiment.NEUTRAL, intensity=0.3):
    conversation = ConversationMemory(
        id=uuid.uuid4().hex,
        timestamp=time.time() * 1000,
        user_input=text,
        core_response="",
        sentiment=sentiment,
        emotional_intensity=intensity,
        topics=[w.lower() for w in text.split()],
    )
    memory = core.record_interaction(conversation)
    if memory is not None:
        print(f"\n[Formative memory] {memory.summary}\n")
    else:
        print(f"\n[Recorded] ({sentiment.value}, {intensity:.2f})\n")


def main():
    parser = argparse.ArgumentParser(description="Drive a NeuroCore interactively")
    parser.add_argument("--name", default="Aurora", help="Core name (default: Aurora)")
    parser.add_argument("--gender", default="female", choices=["female", "male", "other"])
    parser.add_argument("--chronotype", default="intermediate",
                        choices=["early_bird", "intermediate", "night_owl"])
    parser.add_argument("--dt-min", type=float, default=1.0, help="Minutes per tick (default: 1)")
    parser.add_argument("--ticks", type=int, default=0, help="Ticks to run before the prompt")
    parser.add_argument("--batch", action="store_true", help="Exit after --ticks")
    parser.add_argument("--load", default=None, help="Session file to resume")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.load:
        core = CorePersistence.load(args.load)
    else:
        core = create_core(
            args.name,
            circadian_config=CircadianConfig(gender=args.gender, chronotype=args.chronotype),
        )
    session = {"core": core, "dt_ms": args.dt_min * 60_000}

    if args.ticks > 0:
        core.run(args.ticks, session["dt_ms"])
    if args.batch:
        print(core.witness())
        return

    print(f"\n{'=' * 60}")
    print(f"  {core.name} is online.")
    print(f"  Genesis: {core.genesis_hash[:16]}...")
    print(f"  Cycle day: {core.state.cycle_day}")
    print(f"{'=' * 60}")
    print("  Type /help for commands, or just talk.")
    print(f"{'=' * 60}\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n\nGoodbye.")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit"):
            print("\nGoodbye.")
            break

        if handle_command(user_input, session):
            continue

        record(session["core"], user_input)


if __name__ == "__main__":
    main()
