"""Telemetry hook for run transitions.

The engine reports what happened through a callable matching the protocol:

    def track(self, event_type: str, data: dict) -> None: ...

Event types: "game_start", "perks_selected", "attributes_set",
"choice_made", "game_end". Observers must not influence the run; the engine
logs and ignores any exception they raise.

NullTelemetry discards everything and is the default. The backend provides a
file-backed implementation that aggregates sessions into stats.
"""

from __future__ import annotations

from typing import Any, Protocol


class Telemetry(Protocol):
    def track(self, event_type: str, data: dict[str, Any]) -> None: ...


class NullTelemetry:
    def track(self, event_type: str, data: dict[str, Any]) -> None:
        return None
