"""Perk catalog: lookups, bonuses, event weight modifiers, and selection rules."""

from __future__ import annotations

from collections.abc import Iterable

from hengdian.errors import ContentError
from hengdian.models import (
    DEFAULT_GAME_CONFIG,
    AttributeChanges,
    GameConfig,
    Perk,
)
from hengdian.rng import Random


class PerkCatalog:
    def __init__(self, perks: Iterable[Perk], config: GameConfig = DEFAULT_GAME_CONFIG) -> None:
        self.config = config
        self._perks: dict[str, Perk] = {}
        for perk in perks:
            if perk.id in self._perks:
                raise ContentError(f"Duplicate perk id: {perk.id}")
            self._perks[perk.id] = perk

    def __contains__(self, perk_id: str) -> bool:
        return perk_id in self._perks

    def get(self, perk_id: str) -> Perk | None:
        return self._perks.get(perk_id)

    def all(self) -> list[Perk]:
        return list(self._perks.values())

    def selectable(self) -> list[Perk]:
        return [p for p in self._perks.values() if p.category == "initial"]

    def sample_for_choice(self, random: Random, count: int | None = None) -> list[Perk]:
        if count is None:
            count = self.config.perks_to_show
        return random.sample(self.selectable(), count)

    def attribute_bonuses(self, perk_ids: Iterable[str]) -> AttributeChanges:
        totals: dict[str, int] = {}
        for perk_id in perk_ids:
            perk = self._perks.get(perk_id)
            if perk is None or perk.effects.attribute_bonuses is None:
                continue
            for name, value in perk.effects.attribute_bonuses.items():
                totals[name] = totals.get(name, 0) + value
        return AttributeChanges(**totals)

    def bonus_point_total(self, perk_ids: Iterable[str]) -> int:
        bonuses = self.attribute_bonuses(perk_ids)
        return sum(value for _, value in bonuses.items())

    def event_probability_modifier(
        self,
        perk_ids: Iterable[str],
        event_id: str | None = None,
        event_tags: Iterable[str] = (),
    ) -> float:
        """Product of every matching modifier, starting at 1.

        A modifier matches by explicit event id, else by tag, else
        unconditionally when it names neither.
        """
        tags = set(event_tags)
        modifier = 1.0
        for perk_id in perk_ids:
            perk = self._perks.get(perk_id)
            if perk is None:
                continue
            for mod in perk.effects.event_modifiers:
                if mod.event_id and mod.event_id == event_id:
                    modifier *= mod.probability_modifier
                elif mod.tag and mod.tag in tags:
                    modifier *= mod.probability_modifier
                elif not mod.event_id and not mod.tag:
                    modifier *= mod.probability_modifier
        return modifier

    def conflicts(self, selected: Iterable[str], candidate: str) -> bool:
        """True if ``candidate`` lists any selected perk or is listed by one."""
        candidate_perk = self._perks.get(candidate)
        if candidate_perk is None:
            return False
        for perk_id in selected:
            if perk_id in candidate_perk.conflicts_with:
                return True
            other = self._perks.get(perk_id)
            if other is not None and candidate in other.conflicts_with:
                return True
        return False

    def validate_selection(self, perk_ids: list[str]) -> bool:
        if len(perk_ids) != self.config.perks_to_select:
            return False
        if len(set(perk_ids)) != len(perk_ids):
            return False
        # Unlockable perks are earned mid-run, never picked at the start.
        if any(
            perk_id not in self._perks or self._perks[perk_id].category != "initial"
            for perk_id in perk_ids
        ):
            return False
        for i, perk_id in enumerate(perk_ids):
            if self.conflicts(perk_ids[:i], perk_id):
                return False
        return True

