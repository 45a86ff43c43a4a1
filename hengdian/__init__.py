"""Hengdian extras simulation engine."""

from .attributes import AttributeLedger
from .content import Content, load_content
from .endings import EndingCatalog
from .engine import RunEngine
from .errors import (
    ContentError,
    EngineError,
    InvalidChoiceError,
    InvalidDistributionError,
    InvalidPhaseError,
    InvalidSelectionError,
)
from .events import EventCatalog
from .models import RunState
from .perks import PerkCatalog
from .rng import Random

__all__ = [
    "AttributeLedger",
    "Content",
    "ContentError",
    "EndingCatalog",
    "EngineError",
    "EventCatalog",
    "InvalidChoiceError",
    "InvalidDistributionError",
    "InvalidPhaseError",
    "InvalidSelectionError",
    "PerkCatalog",
    "Random",
    "RunEngine",
    "RunState",
    "load_content",
]
