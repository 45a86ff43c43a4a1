"""Content loading: perks, events, and endings from a directory of JSON files.

Directory layout:

    {content}/
      perks.json        ← {"perks": [Perk, ...]}
      endings.json      ← {"endings": [Ending, ...], "priority": [...],
                           "fallback": id, "depletion": id, "breakdown": id}
      events/
        *.json          ← {"events": [Event, ...]}, read in filename order

Catalog order matters (required events and weighted draws scan it), so event
files are read sorted by name and events keep their order within a file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from hengdian.endings import DEFAULT_PRIORITY
from hengdian.errors import ContentError
from hengdian.models import Ending, Event, Perk


class Content(BaseModel):
    """Already-validated catalogs, ready to build an engine from."""

    perks: list[Perk]
    events: list[Event]
    endings: list[Ending]
    ending_priority: list[str] = Field(default_factory=lambda: list(DEFAULT_PRIORITY))
    fallback_ending: str = "ending_veteran"
    depletion_ending: str = "ending_home"
    breakdown_ending: str = "ending_debt"


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ContentError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"{path} is not valid JSON: {e}") from e


def load_content(content_dir: Path) -> Content:
    perks_data = _read_json(content_dir / "perks.json")
    endings_data = _read_json(content_dir / "endings.json")
    events: list[Any] = []
    events_dir = content_dir / "events"
    if events_dir.is_dir():
        for path in sorted(events_dir.glob("*.json")):
            events.extend(_read_json(path).get("events", []))

    raw: dict[str, Any] = {
        "perks": perks_data.get("perks", []),
        "events": events,
        "endings": endings_data.get("endings", []),
    }
    for key, field in (
        ("priority", "ending_priority"),
        ("fallback", "fallback_ending"),
        ("depletion", "depletion_ending"),
        ("breakdown", "breakdown_ending"),
    ):
        if key in endings_data:
            raw[field] = endings_data[key]

    try:
        return Content.model_validate(raw)
    except ValidationError as e:
        raise ContentError(f"Invalid content in {content_dir}: {e}") from e
