"""Ending catalog and priority-ordered resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from hengdian.attributes import AttributeLedger
from hengdian.errors import ContentError
from hengdian.events import meets_condition
from hengdian.models import Attributes, Ending

logger = logging.getLogger(__name__)

# Most to least favorable.
DEFAULT_PRIORITY = [
    "ending_star",
    "ending_influencer",
    "ending_featured",
    "ending_business",
    "ending_crew",
    "ending_veteran",
    "ending_home",
    "ending_debt",
]


class EndingCatalog:
    """Endings plus the rules that pick one.

    Every id the catalog is configured with (priority list, fallback, the two
    game-over endings) must exist; a missing one is a ContentError at
    construction time rather than a silent default later.
    """

    def __init__(
        self,
        endings: Iterable[Ending],
        priority: list[str] | None = None,
        fallback: str = "ending_veteran",
        depletion: str = "ending_home",
        breakdown: str = "ending_debt",
    ) -> None:
        self._endings: dict[str, Ending] = {}
        for ending in endings:
            if ending.id in self._endings:
                raise ContentError(f"Duplicate ending id: {ending.id}")
            self._endings[ending.id] = ending
        self.priority = list(priority if priority is not None else DEFAULT_PRIORITY)
        self.fallback = fallback
        self.depletion = depletion
        self.breakdown = breakdown

        missing = [
            ending_id
            for ending_id in [*self.priority, fallback, depletion, breakdown]
            if ending_id not in self._endings
        ]
        if missing:
            raise ContentError(f"Unknown ending ids: {', '.join(sorted(set(missing)))}")

    def __contains__(self, ending_id: str) -> bool:
        return ending_id in self._endings

    def get(self, ending_id: str) -> Ending:
        try:
            return self._endings[ending_id]
        except KeyError:
            raise ContentError(f"Unknown ending id: {ending_id}") from None

    def all(self) -> list[Ending]:
        return list(self._endings.values())

    def resolve(
        self,
        attributes: Attributes,
        perk_ids: Iterable[str],
        flags: Mapping[str, bool],
        ledger: AttributeLedger,
    ) -> str:
        """First ending in priority order whose requirements hold, else the fallback."""
        perk_ids = list(perk_ids)
        for ending_id in self.priority:
            ending = self._endings[ending_id]
            if meets_condition(ending.requirements, attributes, perk_ids, flags, ledger):
                return ending_id
        logger.debug("No prioritised ending matched, using fallback %s", self.fallback)
        return self.fallback

    def for_game_over(self, reason: str) -> str:
        return self.depletion if reason == "depletion" else self.breakdown
