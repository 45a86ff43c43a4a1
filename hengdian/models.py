"""Core domain models.

Every engine component operates on these types. Content models (perks,
events, endings) forbid unknown keys so a typo in authored JSON fails at load
time instead of becoming a silent no-op. All models are frozen: transitions
build new values with ``model_copy(update=...)``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

AttributeName = Literal["appearance", "acting", "connections", "savings", "resilience"]

ATTRIBUTE_NAMES: tuple[AttributeName, ...] = (
    "appearance",
    "acting",
    "connections",
    "savings",
    "resilience",
)

Stage = Literal["landing", "entry", "grinding", "crossroad", "destiny"]

STAGE_ORDER: tuple[Stage, ...] = ("landing", "entry", "grinding", "crossroad", "destiny")

STAGE_DESCRIPTIONS: dict[Stage, str] = {
    "landing": "Day 1 - stepping off the train with a suitcase",
    "entry": "Week 1 - finding a room, getting registered, the first gig",
    "grinding": "Months 1-3 - a regular extra, running between sets",
    "crossroad": "Year 1 - push upward or find another way",
    "destiny": "Year 3 - who you turned out to be",
}

Phase = Literal[
    "not_started",
    "choosing_perks",
    "allocating_attributes",
    "in_progress",
    "concluded",
]

PerkCategory = Literal["initial", "unlocked"]

EndingType = Literal["upper", "middle", "lower"]


class _Content(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Attributes(_Content):
    """The five-dimensional stat vector."""

    appearance: int = Field(ge=0)
    acting: int = Field(ge=0)
    connections: int = Field(ge=0)
    savings: int = Field(ge=0)
    resilience: int = Field(ge=0)

    def get(self, name: AttributeName) -> int:
        return getattr(self, name)


class AttributeChanges(_Content):
    """A partial attribute map: deltas, bonuses, or min/max bounds."""

    appearance: int | None = None
    acting: int | None = None
    connections: int | None = None
    savings: int | None = None
    resilience: int | None = None

    def items(self) -> list[tuple[AttributeName, int]]:
        """Only the fields that are present, in canonical order."""
        return [
            (name, getattr(self, name))
            for name in ATTRIBUTE_NAMES
            if getattr(self, name) is not None
        ]


class EventModifier(_Content):
    """Scales one event's weight (by id), a tagged group (by tag), or all events."""

    event_id: str | None = None
    tag: str | None = None
    probability_modifier: float


class PerkEffects(_Content):
    attribute_bonuses: AttributeChanges | None = None
    event_modifiers: list[EventModifier] = Field(default_factory=list)


class Perk(_Content):
    id: str
    name: str
    description: str = ""
    category: PerkCategory = "initial"
    effects: PerkEffects = Field(default_factory=PerkEffects)
    conflicts_with: list[str] = Field(default_factory=list)


class Condition(_Content):
    """A conjunction of attribute bounds, perk and flag requirements.

    A condition with no fields present always holds.
    """

    min_attributes: AttributeChanges | None = None
    max_attributes: AttributeChanges | None = None
    required_perks: list[str] = Field(default_factory=list)
    excluded_perks: list[str] = Field(default_factory=list)
    required_flags: list[str] = Field(default_factory=list)
    excluded_flags: list[str] = Field(default_factory=list)


class Consequences(_Content):
    attribute_changes: AttributeChanges | None = None
    set_flags: list[str] = Field(default_factory=list)
    unlock_perks: list[str] = Field(default_factory=list)
    trigger_ending: str | None = None


class Choice(_Content):
    id: str
    text: str
    description: str | None = None
    visible_condition: Condition | None = None
    consequences: Consequences = Field(default_factory=Consequences)
    hidden_chance: float | None = Field(default=None, ge=0, le=1)
    hidden_consequences: Consequences | None = None


class Event(_Content):
    id: str
    stage: Stage
    title: str
    description: str = ""
    conditions: Condition | None = None
    base_chance: float = 1.0
    is_required: bool = False
    tags: list[str] = Field(default_factory=list)
    choices: list[Choice]

    def choice(self, choice_id: str) -> Choice | None:
        return next((c for c in self.choices if c.id == choice_id), None)


class Ending(_Content):
    id: str
    name: str
    type: EndingType = "middle"
    icon: str = ""
    title: str = ""
    description: str = ""
    requirements: Condition = Field(default_factory=Condition)
    epilogue: str = ""


class HistoryEntry(_Content):
    """One resolved choice. Never mutated after creation."""

    event_id: str
    choice_id: str
    stage: Stage
    consequences: Consequences
    hidden_triggered: bool = False


class StageLimits(_Content):
    min: int = Field(ge=0)
    max: int = Field(ge=1)

    @model_validator(mode="after")
    def _check_range(self) -> StageLimits:
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


class GameConfig(_Content):
    """Tunable rules. Defaults match the shipped content."""

    initial_attribute_points: int = 20
    max_attribute_value: int = 10
    min_attribute_value: int = 1
    perks_to_select: int = 3
    perks_to_show: int = 10
    events_per_stage: dict[Stage, StageLimits] = Field(
        default_factory=lambda: {
            "landing": StageLimits(min=3, max=5),
            "entry": StageLimits(min=4, max=6),
            "grinding": StageLimits(min=5, max=7),
            "crossroad": StageLimits(min=4, max=6),
            "destiny": StageLimits(min=2, max=4),
        }
    )
    baseline_attributes: Attributes = Field(
        default_factory=lambda: Attributes(
            appearance=5, acting=5, connections=3, savings=5, resilience=5
        )
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> GameConfig:
        if self.min_attribute_value > self.max_attribute_value:
            raise ValueError(
                f"min_attribute_value ({self.min_attribute_value}) must not exceed "
                f"max_attribute_value ({self.max_attribute_value})"
            )
        missing = [stage for stage in STAGE_ORDER if stage not in self.events_per_stage]
        if missing:
            raise ValueError(f"events_per_stage is missing stages: {', '.join(missing)}")
        return self


DEFAULT_GAME_CONFIG = GameConfig()


class RunState(BaseModel):
    """Everything needed to continue a run, including the random source state."""

    model_config = ConfigDict(frozen=True)

    phase: Phase = "not_started"
    attributes: Attributes
    initial_attributes: Attributes
    selected_perks: tuple[str, ...] = ()
    unlocked_perks: tuple[str, ...] = ()
    offered_perks: tuple[str, ...] = ()
    current_stage: Stage = "landing"
    stage_event_count: int = 0
    history: tuple[HistoryEntry, ...] = ()
    flags: dict[str, bool] = Field(default_factory=dict)
    current_event: Event | None = None
    ending: str | None = None
    seed: int
    rng_state: tuple[int, int] | None = None

    @property
    def perk_ids(self) -> list[str]:
        """Selected plus unlocked perks, as seen by conditions and modifiers."""
        return list(self.selected_perks) + [
            p for p in self.unlocked_perks if p not in self.selected_perks
        ]

    @property
    def triggered_event_ids(self) -> list[str]:
        return [entry.event_id for entry in self.history]


class Rating(BaseModel):
    total: int
    average: float
    letter: str


class GameOver(BaseModel):
    is_over: bool
    reason: Literal["depletion", "breakdown"] | None = None


class StageProgress(BaseModel):
    current: int
    total: int
    stage: Stage
    description: str
