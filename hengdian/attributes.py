"""Attribute ledger: validation, clamped mutation, rating, and game-over checks.

Allocation bounds are [min, max] (1-10 by default). Mid-run changes clamp to
[0, max] instead: a field may hit 0 so the game-over check can fire on it.

Only savings and resilience can end a run early. Savings is checked first, so
a consequence that empties both reports depletion.
"""

from __future__ import annotations

from hengdian.models import (
    ATTRIBUTE_NAMES,
    DEFAULT_GAME_CONFIG,
    AttributeChanges,
    Attributes,
    GameConfig,
    GameOver,
    Rating,
)

# (minimum average, letter), first match wins
RATING_TIERS = [
    (8, "S"),
    (7, "A"),
    (6, "B"),
    (5, "C"),
    (4, "D"),
]


class AttributeLedger:
    def __init__(self, config: GameConfig = DEFAULT_GAME_CONFIG) -> None:
        self.config = config

    def create_initial(self) -> Attributes:
        """Starting point for manual allocation: every field at the minimum."""
        low = self.config.min_attribute_value
        return Attributes(**{name: low for name in ATTRIBUTE_NAMES})

    def total_points(self, attributes: Attributes) -> int:
        return sum(attributes.get(name) for name in ATTRIBUTE_NAMES)

    def validate_distribution(self, attributes: Attributes, bonus_points: int = 0) -> bool:
        if self.total_points(attributes) != self.config.initial_attribute_points + bonus_points:
            return False
        low, high = self.config.min_attribute_value, self.config.max_attribute_value
        return all(low <= attributes.get(name) <= high for name in ATTRIBUTE_NAMES)

    def apply_changes(self, attributes: Attributes, changes: AttributeChanges | None) -> Attributes:
        """Return a new vector with each touched field clamped to [0, max]."""
        if changes is None:
            return attributes
        high = self.config.max_attribute_value
        updated = {
            name: max(0, min(high, attributes.get(name) + delta))
            for name, delta in changes.items()
        }
        if not updated:
            return attributes
        return attributes.model_copy(update=updated)

    def check_requirements(
        self,
        attributes: Attributes,
        minimums: AttributeChanges | None = None,
        maximums: AttributeChanges | None = None,
    ) -> bool:
        if minimums is not None:
            for name, value in minimums.items():
                if attributes.get(name) < value:
                    return False
        if maximums is not None:
            for name, value in maximums.items():
                if attributes.get(name) > value:
                    return False
        return True

    def percentage(self, value: int) -> float:
        """Share of the maximum, for display bars."""
        return value / self.config.max_attribute_value * 100

    def rating(self, attributes: Attributes) -> Rating:
        total = self.total_points(attributes)
        average = total / len(ATTRIBUTE_NAMES)
        letter = next((tier for floor, tier in RATING_TIERS if average >= floor), "E")
        return Rating(total=total, average=average, letter=letter)

    def check_game_over(self, attributes: Attributes) -> GameOver:
        if attributes.savings <= 0:
            return GameOver(is_over=True, reason="depletion")
        if attributes.resilience <= 0:
            return GameOver(is_over=True, reason="breakdown")
        return GameOver(is_over=False)
