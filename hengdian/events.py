"""Event catalog and eligibility engine.

Selection for one turn:
  1. Stage events not yet triggered whose conditions hold are "available".
  2. If any available event is required, the first one (catalog order) wins.
  3. Otherwise each event weighs base_chance × perk modifier; weights ≤ 0 are
     dropped and a weighted draw picks among the rest.

Stage advancement after each resolved choice:
  no events left        → advance
  count ≥ stage max     → advance
  min ≤ count < max     → advance on a fair coin flip
  count < min           → stay
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from hengdian.attributes import AttributeLedger
from hengdian.errors import ContentError
from hengdian.models import (
    DEFAULT_GAME_CONFIG,
    STAGE_ORDER,
    Attributes,
    Choice,
    Condition,
    Event,
    GameConfig,
    Stage,
)
from hengdian.perks import PerkCatalog
from hengdian.rng import Random

logger = logging.getLogger(__name__)


def meets_condition(
    condition: Condition | None,
    attributes: Attributes,
    perk_ids: Iterable[str],
    flags: Mapping[str, bool],
    ledger: AttributeLedger,
) -> bool:
    if condition is None:
        return True
    if not ledger.check_requirements(
        attributes, condition.min_attributes, condition.max_attributes
    ):
        return False
    held = set(perk_ids)
    if any(p not in held for p in condition.required_perks):
        return False
    if any(p in held for p in condition.excluded_perks):
        return False
    if any(not flags.get(f) for f in condition.required_flags):
        return False
    if any(flags.get(f) for f in condition.excluded_flags):
        return False
    return True


class EventCatalog:
    def __init__(
        self,
        events: Iterable[Event],
        perks: PerkCatalog,
        config: GameConfig = DEFAULT_GAME_CONFIG,
        ledger: AttributeLedger | None = None,
    ) -> None:
        self.perks = perks
        self.config = config
        self.ledger = ledger or AttributeLedger(config)
        self._events: dict[str, Event] = {}
        self._by_stage: dict[Stage, list[Event]] = {stage: [] for stage in STAGE_ORDER}
        for event in events:
            if event.id in self._events:
                raise ContentError(f"Duplicate event id: {event.id}")
            self._events[event.id] = event
            self._by_stage[event.stage].append(event)

    def get(self, event_id: str) -> Event | None:
        return self._events.get(event_id)

    def all(self) -> list[Event]:
        return list(self._events.values())

    def events_for_stage(self, stage: Stage) -> list[Event]:
        return list(self._by_stage.get(stage, []))

    def is_eligible(
        self,
        event: Event,
        attributes: Attributes,
        perk_ids: Iterable[str],
        flags: Mapping[str, bool],
    ) -> bool:
        return meets_condition(event.conditions, attributes, perk_ids, flags, self.ledger)

    def available_events(
        self,
        stage: Stage,
        attributes: Attributes,
        perk_ids: Iterable[str],
        flags: Mapping[str, bool],
        triggered_ids: Iterable[str],
    ) -> list[Event]:
        triggered = set(triggered_ids)
        perk_ids = list(perk_ids)
        return [
            event
            for event in self._by_stage.get(stage, [])
            if event.id not in triggered
            and self.is_eligible(event, attributes, perk_ids, flags)
        ]

    def select_next(
        self,
        stage: Stage,
        attributes: Attributes,
        perk_ids: Iterable[str],
        flags: Mapping[str, bool],
        triggered_ids: Iterable[str],
        random: Random,
    ) -> Event | None:
        perk_ids = list(perk_ids)
        available = self.available_events(stage, attributes, perk_ids, flags, triggered_ids)
        if not available:
            return None

        required = next((e for e in available if e.is_required), None)
        if required is not None:
            logger.debug("Required event %s selected in %s", required.id, stage)
            return required

        weighted = []
        for event in available:
            weight = event.base_chance * self.perks.event_probability_modifier(
                perk_ids, event.id, event.tags
            )
            if weight > 0:
                weighted.append((event, weight))
        if not weighted:
            return None

        event = random.weighted_choice(weighted)
        logger.debug("Event %s drawn from %d candidates in %s", event.id, len(weighted), stage)
        return event

    def visible_choices(
        self,
        event: Event,
        attributes: Attributes,
        perk_ids: Iterable[str],
        flags: Mapping[str, bool],
    ) -> list[Choice]:
        perk_ids = list(perk_ids)
        return [
            choice
            for choice in event.choices
            if meets_condition(choice.visible_condition, attributes, perk_ids, flags, self.ledger)
        ]

    def should_advance_stage(
        self,
        stage: Stage,
        events_resolved: int,
        available_count: int,
        random: Random,
    ) -> bool:
        limits = self.config.events_per_stage[stage]
        if available_count == 0:
            return True
        if events_resolved >= limits.max:
            return True
        if events_resolved >= limits.min:
            return random.check(0.5)
        return False

    def next_stage(self, stage: Stage) -> Stage | None:
        index = STAGE_ORDER.index(stage)
        if index >= len(STAGE_ORDER) - 1:
            return None
        return STAGE_ORDER[index + 1]

    def roll_hidden_effect(self, choice: Choice, random: Random) -> bool:
        if not choice.hidden_chance or choice.hidden_consequences is None:
            return False
        return random.check(choice.hidden_chance)
