#!/usr/bin/env python3
"""
Interactive driver for the mind-body agent.

Usage:
    # With an OpenAI-compatible endpoint (MINDBODY_LLM_ENDPOINT etc.):
    python sim.py

    # Specific endpoint and model:
    python sim.py --endpoint http://localhost:8000/v1/chat/completions --model my-model

    # With Claude (requires ANTHROPIC_API_KEY env var):
    python sim.py --claude

    # With mock client (no network needed):
    python sim.py --mock

    # Show state after each turn, and let the agent think on its own:
    python sim.py --mock --show-state --think
"""

import argparse
import asyncio
import json
import logging

from mindbody.core.llm_clients import ChatCompletionClient, MockLLMClient
from mindbody.core.narrative import NarrativeService
from mindbody.core.orchestrator import Orchestrator
from mindbody.core.scenarios import PROJECTILE_MASSES, SCENARIOS, SIMULATIONS, SimulationRunner
from mindbody.core.state import Stimulus


def create_client(args):
    """Create the appropriate narrative client based on CLI args."""
    if args.mock:
        print("[Using MockLLMClient - no network needed]")
        return MockLLMClient()
    elif args.claude:
        from mindbody.core.llm_clients import ClaudeClient
        model = args.model or "claude-sonnet-4-20250514"
        print(f"[Using Claude: {model}]")
        return ClaudeClient(model=model)
    else:
        client = ChatCompletionClient.from_env()
        if args.endpoint:
            client.endpoint = args.endpoint
        if args.model:
            client.model = args.model
        print(f"[Using {client.model} at {client.endpoint}]")
        return client


def format_state(orch):
    """Format the current snapshot for display."""
    snap = orch.snapshot
    isv = orch.store.isv
    interp = snap.interpretation
    parts = [
        f"  Threat: {isv.threat:.2f}  Familiarity: {isv.familiarity:.2f}  Energy: {isv.energy:.2f}",
        f"  Perceived threat: {interp.perceived_threat:.2f}  Salience: {interp.salience:.2f}"
        f"  Cognitive access: {interp.cognitive_access:.2f}",
        f"  Motor bias: {interp.motor_bias.value}  Action: {snap.action.value}",
        f"  {snap.narration}",
    ]
    if snap.cognition_fragments:
        parts.append(f"  Fragments: {', '.join(f.text for f in snap.cognition_fragments)}")
    return '\n'.join(parts)


def format_brain(orch, k=8):
    regions = sorted(orch.snapshot.brain_regions, key=lambda r: r.activation, reverse=True)
    return '\n'.join(
        f"  {r.label:<24} {'#' * int(r.activation * 20):<20} {r.activation:.2f}"
        for r in regions[:k]
    )


def format_learning(orch):
    cognition = orch.snapshot.cognition
    lines = [
        f"  Phase: {cognition.phase.value}  Awareness: {cognition.awareness_level:.2f}",
        f"  Hits: {orch.hits}  Combo: {orch.combo}",
    ]
    context = orch.store.ledger.build_learning_context()
    lines.extend(f"  {line}" for line in context.splitlines())
    return '\n'.join(lines)


HELP_TEXT = """
Commands:
  /help                      Show this help
  /state                     Show internal state and interpretation
  /brain                     Most active brain regions
  /body                      Body state as JSON
  /learned                   Learned patterns and cognition phase
  /thoughts                  Recent thoughts

  /set threat=0.5 ...        Set state components
  /stimulus <label> [type] [intensity]
                             Introduce a stimulus (object|sound|social)
  /clear                     Clear the stimulus
  /proximity <0-1>           Move the stimulus closer or further
  /scenario <id>             Activate a scenario
  /scenarios                 List scenarios
  /yeet <projectile> [n]     Throw something at the agent
  /sim <id>                  Run a simulation sequence
  /sims                      List simulations
  /reset                     Forget everything

  quit, exit                 End session
""".strip()


async def handle_command(user_input, orch, runner):
    """Handle slash commands. Returns True if command was handled."""
    if not user_input.startswith("/"):
        return False

    parts = user_input.split(None, 1)
    cmd = parts[0].lower()
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/help":
        print(f"\n{HELP_TEXT}\n")

    elif cmd == "/state":
        print(f"\n[State]\n{format_state(orch)}\n")

    elif cmd == "/brain":
        print(f"\n[Brain]\n{format_brain(orch)}\n")

    elif cmd == "/body":
        print(json.dumps(orch.snapshot.body_state.to_dict(), indent=2))

    elif cmd == "/learned":
        print(f"\n[Learning]\n{format_learning(orch)}\n")

    elif cmd == "/thoughts":
        thoughts = orch.recent_thoughts(10)
        if not thoughts:
            print("\n[No thoughts yet]\n")
        else:
            print("\n[Thoughts]")
            for t in thoughts:
                print(f"  ~ {t}")
            print()

    elif cmd == "/set":
        try:
            changes = {
                key: float(value)
                for key, value in (pair.split("=", 1) for pair in arg.split())
            }
            orch.set_state(**changes)
            print(f"\n[State]\n{format_state(orch)}\n")
        except (KeyError, ValueError) as e:
            print(f"\nError: {e}")
            print("Usage: /set threat=0.5 familiarity=0.2 energy=0.8\n")

    elif cmd == "/stimulus":
        fields = arg.split()
        if not fields:
            print("\nUsage: /stimulus <label> [object|sound|social] [intensity]\n")
        else:
            try:
                stim_type = fields[1] if len(fields) > 1 else "object"
                intensity = float(fields[2]) if len(fields) > 2 else 0.5
                stimulus = Stimulus(f"stim-{fields[0]}", stim_type, intensity, fields[0])
                orch.introduce_stimulus(stimulus)
                print(f"\n{orch.snapshot.narration}\n")
            except ValueError as e:
                print(f"\nError: {e}\n")

    elif cmd == "/clear":
        orch.clear_stimulus()
        print("\n[Stimulus cleared]\n")

    elif cmd == "/proximity":
        try:
            orch.set_proximity(float(arg))
            print(f"\n{orch.snapshot.narration}\n")
        except ValueError:
            print("\nUsage: /proximity <0-1>\n")

    elif cmd == "/scenario":
        try:
            orch.activate_scenario(arg.strip())
            print(f"\n{orch.snapshot.narration}\n")
        except KeyError as e:
            print(f"\nError: {e}\n")

    elif cmd == "/scenarios":
        print("\n[Scenarios]")
        for s in SCENARIOS.values():
            print(f"  {s.id:<14} {s.description}")
        print()

    elif cmd == "/yeet":
        fields = arg.split()
        if not fields:
            print(f"\nUsage: /yeet <{'|'.join(PROJECTILE_MASSES)}> [count]\n")
        else:
            count = int(fields[1]) if len(fields) > 1 and fields[1].isdigit() else 1
            for _ in range(count):
                orch.register_impact(fields[0])
                reaction = await orch.react_to_impact(fields[0])
                print(f"\n  [hit {orch.hits}] ~ {reaction.thought}")
                print(f"  danger={reaction.danger_level:.2f} directive={reaction.body_directive}")
            orch.process_pending()
            print(f"\n{orch.snapshot.narration}\n")

    elif cmd == "/sim":
        sim = SIMULATIONS.get(arg.strip())
        if sim is None:
            print(f"\nUnknown simulation. Available: {', '.join(SIMULATIONS)}\n")
        else:
            print(f"\n[Running {sim.label}]")
            seen = 0
            task = asyncio.ensure_future(runner.run(sim))
            while not task.done():
                await asyncio.sleep(0.1)
                for entry in runner.log[seen:]:
                    print(f"  {entry.text}")
                seen = len(runner.log)
            for entry in runner.log[seen:]:
                print(f"  {entry.text}")
            await runner.drain()
            orch.process_pending()
            print()

    elif cmd == "/sims":
        print("\n[Simulations]")
        for s in SIMULATIONS.values():
            print(f"  {s.id:<16} {s.description}")
        print()

    elif cmd == "/reset":
        orch.reset()
        print("\n[Agent reset]\n")

    else:
        print(f"\nUnknown command: {cmd}")
        print(f"Type /help for available commands.\n")

    return True


async def repl(args):
    client = create_client(args)
    orch = Orchestrator(NarrativeService(client))
    runner = SimulationRunner(orch)
    consumer = asyncio.ensure_future(orch.run())
    if args.think:
        orch.start_thought_loop()

    print(f"\n{'=' * 60}")
    print("  Agent is online.")
    print(f"  {orch.snapshot.narration}")
    print(f"{'=' * 60}")
    print("  Type /help for commands, or just chat.")
    print(f"{'=' * 60}\n")

    shown = 0
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\n\nGoodbye.")
                break

            # Surface autonomous thoughts that arrived while waiting
            thoughts = list(orch.store.thoughts)
            for t in thoughts[shown:]:
                if t.source == "autonomous":
                    print(f"  ~ {t.text}")
            shown = len(thoughts)

            if not user_input:
                continue

            if user_input.lower() in ("quit", "exit"):
                print("\nGoodbye.")
                break

            if await handle_command(user_input, orch, runner):
                continue

            reply = await orch.send_message(user_input)
            await asyncio.sleep(0)
            print(f"\nAgent: {reply}\n")

            if args.show_state:
                print(f"[State]\n{format_state(orch)}\n")
    finally:
        orch.stop_thought_loop()
        consumer.cancel()


def main():
    parser = argparse.ArgumentParser(description="Drive the mind-body agent")
    parser.add_argument("--mock", action="store_true", help="Use mock client (no network)")
    parser.add_argument("--claude", action="store_true", help="Use Claude")
    parser.add_argument("--endpoint", default=None, help="Chat-completion endpoint URL")
    parser.add_argument("--model", default=None, help="Model name")
    parser.add_argument("--show-state", action="store_true", help="Show state after each turn")
    parser.add_argument("--think", action="store_true", help="Run the autonomous thought loop")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(repl(args))


if __name__ == "__main__":
    main()
