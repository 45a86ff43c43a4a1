"""Run orchestrator. Drives one run from creation to its ending.

Phases:
  not_started → choosing_perks → allocating_attributes → in_progress → concluded

A choice can jump straight to concluded (direct ending trigger or game over).

Every transition takes a RunState and returns a new one; the input is never
modified, so a rejected transition leaves the caller's state as it was. The
random source is rebuilt from ``state.rng_state`` at the start of each
transition and its advanced state is stored in the result, which makes a run
replayable from its seed and the sequence of inputs alone.

Resolving a choice, in order:
  1. apply base consequences (attribute deltas, flags, unlocked perks)
  2. roll the hidden effect; on success apply the hidden consequences too
  3. append history, bump the stage counter, clear the in-flight event
  4. direct ending trigger → concluded
  5. game over (savings first, then resilience) → concluded
  6. maybe advance stage; past the last stage → resolve ending
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any

from hengdian.attributes import AttributeLedger
from hengdian.content import Content
from hengdian.endings import EndingCatalog
from hengdian.errors import (
    ContentError,
    InvalidChoiceError,
    InvalidDistributionError,
    InvalidPhaseError,
    InvalidSelectionError,
)
from hengdian.events import EventCatalog
from hengdian.models import (
    STAGE_DESCRIPTIONS,
    STAGE_ORDER,
    AttributeChanges,
    Attributes,
    Choice,
    Consequences,
    Ending,
    GameConfig,
    HistoryEntry,
    Perk,
    Phase,
    Rating,
    RunState,
    StageProgress,
)
from hengdian.perks import PerkCatalog
from hengdian.rng import MASK32, Random
from hengdian.telemetry import NullTelemetry, Telemetry

logger = logging.getLogger(__name__)


def new_seed() -> int:
    """A fresh 32-bit seed from the wall clock (milliseconds)."""
    return (time.time_ns() // 1_000_000) & MASK32


class RunEngine:
    def __init__(
        self,
        perks: PerkCatalog,
        events: EventCatalog,
        endings: EndingCatalog,
        config: GameConfig | None = None,
        telemetry: Telemetry | None = None,
    ) -> None:
        self.perks = perks
        self.events = events
        self.endings = endings
        self.config = config or events.config
        self.ledger = AttributeLedger(self.config)
        self.telemetry = telemetry or NullTelemetry()

    @classmethod
    def from_content(
        cls,
        content: Content,
        config: GameConfig | None = None,
        telemetry: Telemetry | None = None,
    ) -> RunEngine:
        config = config or GameConfig()
        perks = PerkCatalog(content.perks, config)
        events = EventCatalog(content.events, perks, config)
        endings = EndingCatalog(
            content.endings,
            priority=content.ending_priority,
            fallback=content.fallback_ending,
            depletion=content.depletion_ending,
            breakdown=content.breakdown_ending,
        )
        return cls(perks, events, endings, config, telemetry)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(self, seed: int | None = None) -> RunState:
        if seed is None:
            seed = new_seed()
        seed &= MASK32
        baseline = self.config.baseline_attributes
        return RunState(
            phase="not_started",
            attributes=baseline,
            initial_attributes=baseline,
            seed=seed,
            rng_state=Random(seed).get_state(),
        )

    def start(self, state: RunState) -> RunState:
        """Offer a random sample of selectable perks."""
        self._require_phase(state, "not_started")
        random = self._random(state)
        offered = self.perks.sample_for_choice(random, self.config.perks_to_show)
        self._track("game_start", {"seed": state.seed})
        return state.model_copy(update={
            "phase": "choosing_perks",
            "offered_perks": tuple(p.id for p in offered),
            "rng_state": random.get_state(),
        })

    def choose_perks(self, state: RunState, perk_ids: Iterable[str]) -> RunState:
        self._require_phase(state, "choosing_perks")
        perk_ids = list(perk_ids)
        if not self.perks.validate_selection(perk_ids):
            raise InvalidSelectionError(f"Invalid perk selection: {perk_ids}")
        bonuses = self.perks.attribute_bonuses(perk_ids)
        self._track("perks_selected", {"perks": perk_ids})
        return state.model_copy(update={
            "phase": "allocating_attributes",
            "selected_perks": tuple(perk_ids),
            "attributes": self.ledger.apply_changes(state.attributes, bonuses),
        })

    def allocate_attributes(self, state: RunState, attributes: Attributes) -> RunState:
        self._require_phase(state, "allocating_attributes")
        bonus = self.perks.bonus_point_total(state.selected_perks)
        if not self.ledger.validate_distribution(attributes, bonus):
            expected = self.config.initial_attribute_points + bonus
            raise InvalidDistributionError(
                f"Attributes must total {expected} with every value between "
                f"{self.config.min_attribute_value} and {self.config.max_attribute_value}"
            )
        self._track("attributes_set", {"attributes": attributes.model_dump()})
        return state.model_copy(update={
            "phase": "in_progress",
            "attributes": attributes,
            "initial_attributes": attributes,
        })

    def advance(self, state: RunState) -> RunState:
        """Put the next event in flight, or resolve the ending if none is left.

        A state that already has an event in flight is returned unchanged.
        """
        self._require_phase(state, "in_progress")
        if state.current_event is not None:
            return state
        random = self._random(state)
        event = self.events.select_next(
            state.current_stage,
            state.attributes,
            state.perk_ids,
            state.flags,
            state.triggered_event_ids,
            random,
        )
        state = state.model_copy(update={"rng_state": random.get_state()})
        if event is None:
            logger.debug("No event available in %s, resolving ending", state.current_stage)
            return self.resolve_ending(state)
        return state.model_copy(update={"current_event": event})

    def resolve_choice(self, state: RunState, choice_id: str) -> RunState:
        event = state.current_event
        if event is None:
            raise InvalidChoiceError("No event in progress")
        choice = event.choice(choice_id)
        if choice is None:
            raise InvalidChoiceError(f"Choice {choice_id!r} does not belong to event {event.id!r}")
        trigger = choice.consequences.trigger_ending
        if trigger is not None and trigger not in self.endings:
            raise ContentError(f"Choice {choice_id!r} triggers unknown ending {trigger!r}")

        random = self._random(state)
        attributes, flags, unlocked = self._apply(
            state.attributes, state.flags, state.unlocked_perks, choice.consequences
        )
        hidden = self.events.roll_hidden_effect(choice, random)
        if hidden:
            attributes, flags, unlocked = self._apply(
                attributes, flags, unlocked, choice.hidden_consequences
            )

        entry = HistoryEntry(
            event_id=event.id,
            choice_id=choice.id,
            stage=state.current_stage,
            consequences=choice.consequences,
            hidden_triggered=hidden,
        )
        self._track("choice_made", {
            "event_id": event.id,
            "choice_id": choice.id,
            "hidden_triggered": hidden,
        })
        state = state.model_copy(update={
            "attributes": attributes,
            "flags": flags,
            "unlocked_perks": unlocked,
            "history": state.history + (entry,),
            "stage_event_count": state.stage_event_count + 1,
            "current_event": None,
            "rng_state": random.get_state(),
        })

        if trigger is not None:
            return self._conclude(state, trigger)

        game_over = self.ledger.check_game_over(attributes)
        if game_over.is_over:
            logger.debug("Game over (%s) after %s/%s", game_over.reason, event.id, choice.id)
            return self._conclude(state, self.endings.for_game_over(game_over.reason))

        available = self.events.available_events(
            state.current_stage,
            state.attributes,
            state.perk_ids,
            state.flags,
            state.triggered_event_ids,
        )
        if self.events.should_advance_stage(
            state.current_stage, state.stage_event_count, len(available), random
        ):
            next_stage = self.events.next_stage(state.current_stage)
            state = state.model_copy(update={"rng_state": random.get_state()})
            if next_stage is None:
                return self.resolve_ending(state)
            logger.debug("Advancing from %s to %s", state.current_stage, next_stage)
            return state.model_copy(update={"current_stage": next_stage, "stage_event_count": 0})
        return state.model_copy(update={"rng_state": random.get_state()})

    def play_choice(self, state: RunState, choice_id: str) -> RunState:
        """One full turn: resolve the choice, then put the next event in flight."""
        state = self.resolve_choice(state, choice_id)
        if state.phase == "in_progress":
            state = self.advance(state)
        return state

    def resolve_ending(self, state: RunState) -> RunState:
        self._require_phase(state, "in_progress")
        ending_id = self.endings.resolve(state.attributes, state.perk_ids, state.flags, self.ledger)
        return self._conclude(state, ending_id)

    # ------------------------------------------------------------------
    # Save/resume and replay
    # ------------------------------------------------------------------

    def restore(self, state: RunState) -> RunState:
        """Prepare a loaded state; snapshots without a stream position reseed from the seed."""
        if state.rng_state is None:
            return state.model_copy(update={"rng_state": Random(state.seed).get_state()})
        return state

    def replay(
        self,
        seed: int,
        perk_ids: Iterable[str],
        attributes: Attributes,
        choice_ids: Iterable[str],
    ) -> RunState:
        """Rebuild a run from its seed and inputs. Telemetry is not notified."""
        quiet = RunEngine(self.perks, self.events, self.endings, self.config)
        state = quiet.start(quiet.create(seed))
        state = quiet.choose_perks(state, perk_ids)
        state = quiet.allocate_attributes(state, attributes)
        state = quiet.advance(state)
        for choice_id in choice_ids:
            if state.phase != "in_progress":
                break
            state = quiet.play_choice(state, choice_id)
        return state

    def replay_history(self, state: RunState) -> RunState:
        if state.phase not in ("in_progress", "concluded"):
            raise InvalidPhaseError(f"Run is {state.phase}, nothing to replay")
        return self.replay(
            state.seed,
            state.selected_perks,
            state.initial_attributes,
            [entry.choice_id for entry in state.history],
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def offered_perks(self, state: RunState) -> list[Perk]:
        perks = []
        for perk_id in state.offered_perks:
            perk = self.perks.get(perk_id)
            if perk is None:
                raise ContentError(f"Unknown perk id: {perk_id}")
            perks.append(perk)
        return perks

    def visible_choices(self, state: RunState) -> list[Choice]:
        if state.current_event is None:
            return []
        return self.events.visible_choices(
            state.current_event, state.attributes, state.perk_ids, state.flags
        )

    def ending(self, state: RunState) -> Ending | None:
        if state.ending is None:
            return None
        return self.endings.get(state.ending)

    def rating(self, state: RunState) -> Rating:
        return self.ledger.rating(state.attributes)

    def stage_progress(self, state: RunState) -> StageProgress:
        return StageProgress(
            current=STAGE_ORDER.index(state.current_stage) + 1,
            total=len(STAGE_ORDER),
            stage=state.current_stage,
            description=STAGE_DESCRIPTIONS[state.current_stage],
        )

    def last_hidden_effect(self, state: RunState) -> AttributeChanges | None:
        """The hidden attribute changes of the latest choice, if its roll succeeded."""
        if not state.history or not state.history[-1].hidden_triggered:
            return None
        entry = state.history[-1]
        event = self.events.get(entry.event_id)
        if event is None:
            raise ContentError(f"Unknown event id: {entry.event_id}")
        choice = event.choice(entry.choice_id)
        if choice is None or choice.hidden_consequences is None:
            return None
        return choice.hidden_consequences.attribute_changes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _random(self, state: RunState) -> Random:
        if state.rng_state is None:
            return Random(state.seed)
        return Random.from_state(state.rng_state)

    def _require_phase(self, state: RunState, phase: Phase) -> None:
        if state.phase != phase:
            raise InvalidPhaseError(f"Run is {state.phase}, expected {phase}")

    def _apply(
        self,
        attributes: Attributes,
        flags: Mapping[str, bool],
        unlocked: tuple[str, ...],
        consequences: Consequences | None,
    ) -> tuple[Attributes, dict[str, bool], tuple[str, ...]]:
        flags = dict(flags)
        if consequences is None:
            return attributes, flags, unlocked
        attributes = self.ledger.apply_changes(attributes, consequences.attribute_changes)
        for flag in consequences.set_flags:
            flags[flag] = True
        for perk_id in consequences.unlock_perks:
            if perk_id not in self.perks:
                raise ContentError(f"Unknown perk id: {perk_id}")
            if perk_id not in unlocked:
                unlocked = unlocked + (perk_id,)
        return attributes, flags, unlocked

    def _conclude(self, state: RunState, ending_id: str) -> RunState:
        logger.debug("Run concluded with %s", ending_id)
        self._track("game_end", {
            "ending": ending_id,
            "attributes": state.attributes.model_dump(),
        })
        return state.model_copy(update={
            "phase": "concluded",
            "ending": ending_id,
            "current_event": None,
        })

    def _track(self, event_type: str, data: dict[str, Any]) -> None:
        try:
            self.telemetry.track(event_type, data)
        except Exception as e:
            logger.warning("Telemetry %s failed: %s", event_type, e)
