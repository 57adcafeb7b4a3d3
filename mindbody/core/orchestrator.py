# ═══════════════════════════════════════════════════════════════════════════════
# PART 10: TICK ORCHESTRATOR
# Design: I1 (Systems Architect) + A3 (ML Integration)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
I1: "Every mutation goes through an entry point, and every entry point ends
with a tick. The snapshot is never stale relative to the store."

A3: "Narrative calls are slow and can fail. They run off the loop, their
results come back as events, and a failed call still produces text."

Event flow:
    send_message / thought loop / react_to_impact
      -> narrative service (worker thread)
      -> Event posted on the channel
      -> process_pending() or run() applies it to the store, then ticks
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from mindbody.core.learning import LearnedPattern, impact_intensity
from mindbody.core.narrative import (
    ImpactReaction,
    NarrativeService,
    build_state_context,
    fallback_chat_reply,
    fallback_impact_reaction,
    fallback_thought,
)
from mindbody.core.scenarios import PROJECTILE_MASSES, Scenario, get_scenario
from mindbody.core.state import Stimulus, clamp
from mindbody.core.store import Snapshot, StateStore, run_pipeline

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """Configuration for the tick loop and the narrative flows."""
    tick_interval: float = 0.1          # seconds between ticker cycles
    thought_interval_min: float = 8.0   # autonomous thought spacing, seconds
    thought_interval_max: float = 15.0
    combo_window: float = 2.0           # hits closer than this extend the combo
    default_mass: float = 1.0           # for projectile categories with no known mass
    user_chat_activity: float = 0.8
    reply_chat_activity: float = 0.6
    seed: Optional[int] = None


# ── Events ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChatReplyReceived:
    content: str
    timestamp: float
    fallback: bool = False


@dataclass(frozen=True)
class ThoughtReceived:
    text: str
    timestamp: float
    source: str = "autonomous"  # autonomous | reactive


@dataclass(frozen=True)
class ImpactReactionReceived:
    category: str
    reaction: ImpactReaction
    timestamp: float
    fallback: bool = False


Event = Union[ChatReplyReceived, ThoughtReceived, ImpactReactionReceived]


def apply_event(store: StateStore, event: Event, config: Optional[OrchestratorConfig] = None) -> None:
    """Fold one narrative result into the store."""
    config = config or OrchestratorConfig()
    if isinstance(event, ChatReplyReceived):
        store.add_chat_message("assistant", event.content, event.timestamp, event.fallback)
        store.record_chat_activity(config.reply_chat_activity, event.timestamp)
    elif isinstance(event, ThoughtReceived):
        store.add_thought(event.text, event.source, event.timestamp)
    elif isinstance(event, ImpactReactionReceived):
        store.last_impact_reaction = event.reaction
        store.add_thought(event.reaction.thought, "reactive", event.timestamp)
    else:
        raise TypeError(f"Unknown event: {event!r}")


# ── Orchestrator ─────────────────────────────────────────────────────────────


class Orchestrator:
    """
    Owns the StateStore and the latest Snapshot.

    Synchronous entry points mutate the store and tick immediately. The
    async flows (chat, thought loop, impact reactions) never write the
    store directly; they post events. With no service configured every
    flow uses the deterministic fallbacks.
    """

    def __init__(
        self,
        service: Optional[NarrativeService] = None,
        config: Optional[OrchestratorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        store: Optional[StateStore] = None,
    ):
        self.service = service
        self.config = config or OrchestratorConfig()
        self.clock = clock
        self.store = store or StateStore()
        self.events: asyncio.Queue = asyncio.Queue()

        self.is_chatting = False
        self.hits = 0
        self.combo = 0
        self._last_hit: Optional[float] = None

        self._rng = np.random.RandomState(self.config.seed)
        self._ticker_task: Optional[asyncio.Task] = None
        self._thought_task: Optional[asyncio.Task] = None

        self.snapshot: Snapshot = self.tick()

    # ── Pipeline ────────────────────────────────────────────────────────────

    def tick(self) -> Snapshot:
        """Recompute the snapshot from the current store."""
        self.snapshot = run_pipeline(self.store, self.clock())
        return self.snapshot

    def state_context(self) -> str:
        stimulus = self.store.stimulus
        return build_state_context(
            self.store.isv,
            self.store.ledger,
            narration=self.snapshot.narration,
            action=self.snapshot.action.value,
            stimulus_label=stimulus.label if stimulus else None,
        )

    # ── Entry points ────────────────────────────────────────────────────────

    def set_state(self, **fields: Any) -> Snapshot:
        self.store.isv.update(**fields)
        return self.tick()

    def introduce_stimulus(self, stimulus: Stimulus) -> Snapshot:
        """Make a stimulus active. Each exposure adds a little familiarity."""
        self.store.stimulus = stimulus
        self.store.exposure_count += 1
        self.store.isv.update(familiarity=self.store.isv.familiarity + 0.05)
        return self.tick()

    def clear_stimulus(self) -> Snapshot:
        self.store.stimulus = None
        return self.tick()

    def set_proximity(self, proximity: float) -> Snapshot:
        """Closeness of the active stimulus; pulls threat toward proximity."""
        p = clamp(proximity)
        self.store.proximity = p
        if self.store.stimulus_active:
            self.store.isv.update(threat=self.store.isv.threat * 0.7 + p * 0.3)
        return self.tick()

    def activate_scenario(self, scenario: Union[str, Scenario]) -> Snapshot:
        if isinstance(scenario, str):
            scenario = get_scenario(scenario)
        isv = self.store.isv
        isv.update(**{
            name: getattr(isv, name) + delta
            for name, delta in scenario.state_delta.items()
        })
        self.store.active_scenario = scenario.id
        logger.info("Scenario activated: %s", scenario.id)
        return self.introduce_stimulus(scenario.make_stimulus())

    def register_impact(self, category: str, mass: Optional[float] = None) -> LearnedPattern:
        """
        A projectile hit the agent.

        Threat spikes in proportion to mass, amplified by what has already
        been learned. The hit is folded into the learning accumulator and
        boosts brain activity for a few seconds.
        """
        now = self.clock()
        if mass is None:
            mass = PROJECTILE_MASSES.get(category, self.config.default_mass)

        bias = self.store.ledger.get_learned_threat_bias(now)
        isv = self.store.isv
        isv.update(threat=isv.threat + 0.15 * mass * (1 + bias * 0.5))

        pattern = self.store.ledger.register_hit(category, mass, now)
        self.store.record_impact(impact_intensity(mass), now)

        self.hits += 1
        if self._last_hit is not None and now - self._last_hit < self.config.combo_window:
            self.combo += 1
        else:
            self.combo = 1
        self._last_hit = now

        logger.debug(
            "Impact: %s (mass=%.1f) hit=%d combo=%d threat=%.2f",
            category, mass, self.hits, self.combo, isv.threat,
        )
        self.tick()
        return pattern

    def register_chat_activity(self, level: float = 0.8) -> Snapshot:
        self.store.record_chat_activity(level, self.clock())
        return self.tick()

    def reset(self) -> Snapshot:
        """Return to defaults and forget everything learned."""
        self.store.reset()
        self.hits = 0
        self.combo = 0
        self._last_hit = None
        while not self.events.empty():
            self.events.get_nowait()
        logger.info("Agent reset")
        return self.tick()

    # ── Event channel ───────────────────────────────────────────────────────

    def post(self, event: Event) -> None:
        self.events.put_nowait(event)

    def process_pending(self) -> int:
        """Apply every queued event, then tick once. Returns the count applied."""
        applied = 0
        while not self.events.empty():
            apply_event(self.store, self.events.get_nowait(), self.config)
            applied += 1
        if applied:
            self.tick()
        return applied

    async def run(self) -> None:
        """Consume events as they arrive. Runs until cancelled."""
        while True:
            event = await self.events.get()
            apply_event(self.store, event, self.config)
            self.tick()

    # ── Ticker ──────────────────────────────────────────────────────────────

    def start_ticker(self) -> None:
        if self._ticker_task is None or self._ticker_task.done():
            self._ticker_task = asyncio.ensure_future(self._ticker())

    def stop_ticker(self) -> None:
        if self._ticker_task is not None:
            self._ticker_task.cancel()
            self._ticker_task = None

    async def _ticker(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval)
            if not self.process_pending():
                self.tick()

    # ── Chat ────────────────────────────────────────────────────────────────

    async def send_message(self, text: str) -> Optional[str]:
        """
        Send a user message and wait for the reply.

        Returns None without doing anything if a chat is already in flight.
        Posts ChatReplyReceived, then ThoughtReceived(reactive).
        """
        if self.is_chatting:
            logger.debug("Chat busy, dropping message")
            return None
        self.is_chatting = True
        try:
            now = self.clock()
            history = [
                {"role": m.role, "content": m.content}
                for m in self.store.chat_messages
            ]
            self.store.add_chat_message("user", text, now)
            self.store.ledger.register_exchange(text, now)
            self.register_chat_activity(self.config.user_chat_activity)

            fallback = False
            try:
                reply = await self._call("chat", text, history, self.state_context())
            except Exception as exc:
                logger.warning("Chat failed, using local reply: %s", exc)
                reply = fallback_chat_reply(self.store.isv, self.store.ledger)
                fallback = True
            self.post(ChatReplyReceived(reply, self.clock(), fallback))

            try:
                thought = await self._call("react_to_chat", text, reply, self.state_context())
            except Exception as exc:
                logger.warning("Reactive thought failed, using local thought: %s", exc)
                thought = fallback_thought(self.store.isv, self.snapshot.cognition_fragments)
            self.post(ThoughtReceived(thought, self.clock(), "reactive"))
            return reply
        finally:
            self.is_chatting = False

    # ── Thoughts ────────────────────────────────────────────────────────────

    @property
    def is_thinking(self) -> bool:
        return self._thought_task is not None and not self._thought_task.done()

    def start_thought_loop(self) -> None:
        if not self.is_thinking:
            self._thought_task = asyncio.ensure_future(self._thought_loop())

    def stop_thought_loop(self) -> None:
        """Cancel the pending thought timer. No thought is posted after this."""
        if self._thought_task is not None:
            self._thought_task.cancel()
            self._thought_task = None

    def next_thought_delay(self) -> float:
        return float(self._rng.uniform(
            self.config.thought_interval_min, self.config.thought_interval_max
        ))

    async def generate_thought(self) -> str:
        """Produce one autonomous thought and post it."""
        try:
            thought = await self._call("think", self.state_context())
        except Exception as exc:
            logger.warning("Thought generation failed, using local thought: %s", exc)
            thought = fallback_thought(self.store.isv, self.snapshot.cognition_fragments)
        self.post(ThoughtReceived(thought, self.clock(), "autonomous"))
        return thought

    async def _thought_loop(self) -> None:
        while True:
            await asyncio.sleep(self.next_thought_delay())
            await self.generate_thought()

    # ── Impacts ─────────────────────────────────────────────────────────────

    async def react_to_impact(
        self,
        category: str,
        mass: Optional[float] = None,
        dodged: bool = False,
    ) -> ImpactReaction:
        """Structured reaction to a hit, posted as ImpactReactionReceived."""
        if mass is None:
            mass = PROJECTILE_MASSES.get(category)
        hit_count = self.hits

        fallback = False
        try:
            reaction = await self._call(
                "react_to_impact", category, hit_count, mass, self.state_context(), dodged
            )
        except Exception as exc:
            logger.warning("Impact reaction failed, using local reaction: %s", exc)
            reaction = fallback_impact_reaction(category, hit_count, mass)
            fallback = True
        self.post(ImpactReactionReceived(category, reaction, self.clock(), fallback))
        return reaction

    # ── Internal ────────────────────────────────────────────────────────────

    async def _call(self, method: str, *args: Any) -> Any:
        if self.service is None:
            raise RuntimeError("no narrative service configured")
        return await asyncio.to_thread(getattr(self.service, method), *args)

    # ── State ───────────────────────────────────────────────────────────────

    def get_state(self) -> Dict[str, Any]:
        store = self.store
        return {
            "isv": store.isv.to_dict(),
            "stimulus": store.stimulus.to_dict() if store.stimulus else None,
            "proximity": store.proximity,
            "exposure_count": store.exposure_count,
            "active_scenario": store.active_scenario,
            "hits": self.hits,
            "combo": self.combo,
            "is_chatting": self.is_chatting,
            "is_thinking": self.is_thinking,
            "patterns": [p.to_dict() for p in store.ledger.patterns.values()],
            "associations": [a.to_dict() for a in store.ledger.associations],
            "thoughts": [t.to_dict() for t in store.thoughts],
            "chat": [m.to_dict() for m in store.chat_messages],
            "last_impact_reaction": (
                store.last_impact_reaction.to_dict()
                if store.last_impact_reaction else None
            ),
            "snapshot": self.snapshot.to_dict(),
        }

    def recent_thoughts(self, n: int = 5) -> List[str]:
        return [t.text for t in list(self.store.thoughts)[-n:]]
