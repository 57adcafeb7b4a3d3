# ═══════════════════════════════════════════════════════════════════════════════
# SCENARIOS + SIMULATION SEQUENCES
# Design: N5 (Embodied Cognition) + I3 (State Management)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
N5: "A scenario is a situation, not a setting. It brings a stimulus and pushes
the state: an alley adds threat, an old friend takes it away."

I3: "Sequences are scripts over the orchestrator's public entry points. They
never reach into the store. Starting one cancels whatever was playing."
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from mindbody.core.state import Stimulus, StimulusType

logger = logging.getLogger(__name__)


# ── Scenario catalogue ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Scenario:
    """A stimulus plus an additive change to the ISV."""
    id: str
    label: str
    description: str
    stimulus: Stimulus
    state_delta: Dict[str, float] = field(default_factory=dict)

    def make_stimulus(self) -> Stimulus:
        return replace(self.stimulus)


SCENARIOS: Dict[str, Scenario] = {
    s.id: s for s in [
        Scenario(
            "dark-alley", "Dark Alley", "Footsteps behind you in the dark.",
            Stimulus("footsteps", StimulusType.SOUND, 0.7, "footsteps in the dark"),
            {"threat": 0.35, "familiarity": -0.05, "energy": -0.05},
        ),
        Scenario(
            "reunion", "Old Friend", "A familiar face appears out of nowhere.",
            Stimulus("old-friend", StimulusType.SOCIAL, 0.5, "an old friend"),
            {"threat": -0.4, "familiarity": 0.5, "energy": 0.1},
        ),
        Scenario(
            "flow-state", "Flow State", "Absorbed in a task that fits perfectly.",
            Stimulus("task", StimulusType.OBJECT, 0.3, "a familiar task"),
            {"threat": -0.3, "familiarity": 0.3, "energy": 0.2},
        ),
        Scenario(
            "sudden-noise", "Sudden Noise", "Something crashes nearby.",
            Stimulus("crash", StimulusType.SOUND, 0.9, "a sudden crash"),
            {"threat": 0.25},
        ),
        Scenario(
            "stranger", "Stranger", "Someone unfamiliar walks straight toward you.",
            Stimulus("stranger", StimulusType.SOCIAL, 0.5, "an unfamiliar person"),
            {"threat": 0.15, "familiarity": -0.1},
        ),
        Scenario(
            "exhaustion", "Exhaustion", "The end of a very long day.",
            Stimulus("long-road", StimulusType.OBJECT, 0.2, "a long road ahead"),
            {"threat": 0.05, "energy": -0.5},
        ),
    ]
}

PROJECTILE_MASSES: Dict[str, float] = {
    "baseball": 1.0,
    "bowling": 3.0,
    "watermelon": 4.0,
    "anvil": 8.0,
    "fish": 0.5,
}


def get_scenario(scenario_id: str) -> Scenario:
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise KeyError(
            f"Unknown scenario '{scenario_id}'. Available: {sorted(SCENARIOS)}"
        ) from None


# ── Simulation sequences ──────────────────────────────────────────────────────


class StepType(Enum):
    NARRATE = "narrate"
    SET_STATE = "set_state"
    CHAT = "chat"
    YEET = "yeet"
    SCENARIO = "scenario"
    CLEAR = "clear"
    PAUSE = "pause"


@dataclass(frozen=True)
class SimStep:
    """
    One scripted step. Which optional fields matter depends on the type:
    SET_STATE uses changes, CHAT uses message, YEET uses projectile and count,
    SCENARIO uses scenario_id. PAUSE waits for delay; the others wait for
    delay after acting.
    """
    type: StepType
    narration: str
    delay: float = 0.0
    changes: Dict[str, float] = field(default_factory=dict)
    message: Optional[str] = None
    projectile: Optional[str] = None
    count: int = 1
    scenario_id: Optional[str] = None


@dataclass(frozen=True)
class Simulation:
    id: str
    label: str
    description: str
    steps: Tuple[SimStep, ...]


def _narrate(text, delay=0.0):
    return SimStep(StepType.NARRATE, text, delay)


def _set_state(narration, delay=0.3, **changes):
    return SimStep(StepType.SET_STATE, narration, delay, changes=changes)


def _chat(message, narration, delay=0.5):
    return SimStep(StepType.CHAT, narration, delay, message=message)


def _yeet(projectile, narration, delay=0.5, count=1):
    return SimStep(StepType.YEET, narration, delay, projectile=projectile, count=count)


def _scenario(scenario_id, narration, delay=0.5):
    return SimStep(StepType.SCENARIO, narration, delay, scenario_id=scenario_id)


def _clear(narration, delay=0.8):
    return SimStep(StepType.CLEAR, narration, delay)


def _pause(duration, narration):
    return SimStep(StepType.PAUSE, narration, duration)


UNDER_SIEGE = Simulation(
    "under-siege", "Under Siege",
    "Escalating threat: calm to overwhelmed as projectiles and probing questions pile up.",
    (
        _narrate("Resetting agent to calm baseline..."),
        _set_state("Baseline: low threat, high energy", 0.5,
                   threat=0.05, familiarity=0.1, energy=0.9),
        _clear("Clearing any active stimuli"),
        _pause(1.5, "Agent is calm. Observing."),
        _chat("Hello. How are you feeling right now?", "First contact: probing baseline"),
        _pause(3.5, "Agent responds with full cognitive access"),
        _yeet("baseball", "Incoming: baseball"),
        _pause(2.5, "Threat rises. Body tenses. Amygdala activating."),
        _chat("Did you feel that? Something just hit you.", "Is the agent aware of the impact?"),
        _pause(3.0, "Threat now colors the agent's words"),
        _narrate("Escalating: barrage incoming...", 0.3),
        _yeet("bowling", "Heavy projectile: bowling ball", 0.4),
        _pause(1.2, "Impact! Threat climbing."),
        _yeet("watermelon", "Another one: watermelon", 0.4),
        _pause(1.2, "Sustained bombardment. Motor bias shifting to withdrawal."),
        _yeet("anvil", "Maximum threat: anvil incoming", 0.4),
        _pause(2.0, "Cognitive access collapsing."),
        _chat("Are you afraid? Can you still think clearly?", "Introspection under high threat"),
        _pause(3.5, "Threat-dominant state degrades reasoning"),
        _set_state("Peak threat: survival mode fully engaged", threat=0.85),
        _pause(2.0, "Amygdala dominance. Somatic tension maximal."),
        _narrate("Simulation complete: calm (5% threat) to overwhelmed (85% threat)."),
    ),
)

LEARNING_CURVE = Simulation(
    "learning-curve", "Learning Curve",
    "Repeated exposure: familiarity builds and defensive patterns form from impacts.",
    (
        _narrate("Resetting to fresh state..."),
        _set_state("Fresh agent: minimal familiarity", 0.5,
                   threat=0.15, familiarity=0.05, energy=0.85),
        _clear("Clean slate"),
        _pause(1.5, "Agent is naive. No exposure history."),
        _chat("I'm going to throw things at you. Pay attention to what happens.",
              "Establishing context"),
        _pause(3.0, "Baseline response recorded."),
        _yeet("baseball", "First impact: no pattern for this yet"),
        _pause(2.5, "New association forming: baseball impact means threat."),
        _yeet("baseball", "Second baseball: recognition building"),
        _pause(2.5, "Familiarity with baseballs increasing."),
        _yeet("baseball", "Third hit: pattern recognition strengthening"),
        _pause(2.0, "The agent now anticipates baseballs."),
        _chat("Do you notice what's happening? What are you learning?",
              "Can it describe its own learning?"),
        _pause(3.5, "Agent reflects on accumulated experience."),
        _yeet("baseball", "Fourth hit: defensive patterns deepening", 0.4),
        _pause(1.5, "Conditioned response forming."),
        _yeet("baseball", "Fifth hit: survival learning embedding", 0.4),
        _pause(2.0, "Five exposures: threat bias and familiarity both elevated."),
        _yeet("fish", "Curveball: a fish!"),
        _pause(2.5, "New pattern, but general projectile familiarity carries over."),
        _chat("That was different, wasn't it? How do you feel about new things versus familiar ones?",
              "Does general knowledge transfer?"),
        _pause(3.5, "Agent compares novel and familiar stimuli."),
        _narrate("Simulation complete: responses evolved from naive to conditioned."),
    ),
)

FULL_ARC = Simulation(
    "full-arc", "The Full Arc",
    "Fear, crisis, rescue, calm, flow.",
    (
        _narrate("Beginning the emotional arc..."),
        _set_state("Starting neutral with slight unease", 0.5,
                   threat=0.1, familiarity=0.15, energy=0.7),
        _clear("Clear scene"),
        _pause(1.5, "Slightly tense, aware."),
        _narrate("ACT 1: RISING FEAR", 0.3),
        _scenario("dark-alley", "Footsteps in the dark"),
        _pause(2.5, "Threat surges. Body withdraws."),
        _chat("I think something is following me. I'm scared.", "Fear through the social channel"),
        _pause(3.0, "Agent processes its own fear and the user's alarm"),
        _set_state("Fear peaks: cognitive resources draining", threat=0.75, energy=0.5),
        _yeet("bowling", "The threat materializes: physical impact!"),
        _pause(2.5, "Crisis: maximum threat, minimal cognitive access."),
        _chat("We need to run! Can you think straight?", "Cognition under extreme stress"),
        _pause(3.5, "Threat dominates everything."),
        _narrate("ACT 2: RESCUE", 0.5),
        _scenario("reunion", "Old friend appears. Familiarity surges, threat drops."),
        _pause(3.0, "Threat plummets, familiarity soars"),
        _chat("Oh thank god, it's you! I thought we were done for.", "Relief through social connection"),
        _pause(3.0, "Warmth returns. Body relaxes."),
        _set_state("Safety restored", threat=0.08, familiarity=0.75, energy=0.8),
        _pause(2.5, "Activity shifts from amygdala to prefrontal."),
        _narrate("ACT 3: TRANSCENDENCE", 0.5),
        _scenario("flow-state", "Flow state: everything clicks"),
        _pause(2.5, "Minimal threat, high energy, strong familiarity."),
        _chat("How do you feel now compared to before? What was that whole experience like?",
              "Reflection on the full arc"),
        _pause(4.0, "Fear, crisis, rescue, peace."),
        _narrate("The Full Arc complete."),
    ),
)

SIMULATIONS: Dict[str, Simulation] = {
    sim.id: sim for sim in (UNDER_SIEGE, LEARNING_CURVE, FULL_ARC)
}


# ── Runner ────────────────────────────────────────────────────────────────────


class CancelToken:
    """Replaced on every run; the old token is marked cancelled."""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(frozen=True)
class LogEntry:
    text: str
    timestamp: float
    kind: str  # narration | action | complete


class SimulationRunner:
    """
    Plays a Simulation against an Orchestrator.

    Chat and impact-reaction flows are launched as tasks and not awaited, so
    the script keeps its own pace. Call drain() to wait for them.
    """

    YEET_SPACING = 0.2  # seconds between projectiles in a multi-count step

    def __init__(
        self,
        orchestrator: Any,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self._sleep = sleep
        self._token = CancelToken()
        self._tasks: Set[asyncio.Task] = set()

        self.active: Optional[Simulation] = None
        self.current_step = 0
        self.total_steps = 0
        self.step_narration = ""
        self.is_running = False
        self.is_complete = False
        self.log: List[LogEntry] = []

    async def run(self, simulation: Simulation) -> bool:
        """
        Run a simulation to the end. Cancels any sequence already running.

        Returns True if it completed, False if it was cancelled.
        """
        self._token.cancel()
        token = self._token = CancelToken()

        self.active = simulation
        self.current_step = 0
        self.total_steps = len(simulation.steps)
        self.step_narration = f"Starting: {simulation.label}"
        self.is_running = True
        self.is_complete = False
        self.log = []
        self._log(f"Starting simulation: {simulation.label}", "narration")
        logger.info("Simulation %s started (%d steps)", simulation.id, self.total_steps)

        for i, step in enumerate(simulation.steps):
            if token.cancelled:
                self._finish_cancelled(simulation, token)
                return False
            self.current_step = i + 1
            await self._execute(step, token)

        if token.cancelled:
            self._finish_cancelled(simulation, token)
            return False

        self.is_running = False
        self.is_complete = True
        self.step_narration = "Simulation complete"
        self._log("Simulation complete", "complete")
        logger.info("Simulation %s complete", simulation.id)
        return True

    def cancel(self) -> None:
        self._token.cancel()
        self.is_running = False
        self.is_complete = False
        self.step_narration = "Cancelled"

    async def drain(self) -> None:
        """Wait for chat and impact flows launched by steps."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Steps ───────────────────────────────────────────────────────────────

    async def _execute(self, step: SimStep, token: CancelToken) -> None:
        orch = self.orchestrator
        self.step_narration = step.narration

        if step.type is StepType.NARRATE:
            self._log(step.narration, "narration")
        elif step.type is StepType.SET_STATE:
            orch.set_state(**step.changes)
            self._log(step.narration, "action")
        elif step.type is StepType.CHAT:
            self._log(f'"{step.message}"', "action")
            self._spawn(orch.send_message(step.message))
        elif step.type is StepType.YEET:
            self._log(step.narration, "action")
            for j in range(step.count):
                orch.register_impact(step.projectile)
                self._spawn(orch.react_to_impact(step.projectile))
                if j < step.count - 1:
                    await self._sleep(self.YEET_SPACING)
                    if token.cancelled:
                        return
        elif step.type is StepType.SCENARIO:
            orch.activate_scenario(step.scenario_id)
            self._log(step.narration, "action")
        elif step.type is StepType.CLEAR:
            orch.clear_stimulus()
            self._log(step.narration, "action")
        elif step.type is StepType.PAUSE:
            self._log(step.narration, "narration")

        if step.delay > 0:
            await self._sleep(step.delay)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _finish_cancelled(self, simulation: Simulation, token: CancelToken) -> None:
        logger.info("Simulation %s cancelled", simulation.id)
        # A newer run owns the status fields once it has replaced the token
        if token is self._token:
            self.is_running = False
            self.step_narration = "Cancelled"
            self._log("Simulation cancelled", "complete")

    def _log(self, text: str, kind: str) -> None:
        self.log.append(LogEntry(text, self.orchestrator.clock(), kind))
