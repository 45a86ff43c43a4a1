"""Local play analytics: one session per run, aggregated into stats.

Sessions live in data/analytics.json (most recent 100 kept). The engine
reports through SessionTelemetry, which appends each event to the run's
session as it happens:

  game_start       opens a new session for the run slug
  perks_selected   records the chosen perks
  attributes_set   records the starting attributes
  choice_made      counts choices (event_id/choice_id kept for the distribution)
  game_end         records the ending and final attributes, closes the session
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .core import data_dir

logger = logging.getLogger(__name__)

MAX_SESSIONS = 100


def _analytics_path() -> Path:
    return data_dir() / "analytics.json"


def get_all_sessions() -> list[dict[str, Any]]:
    path = _analytics_path()
    if not path.is_file():
        return []
    try:
        sessions = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Unreadable analytics file, starting over: {e}")
        return []
    return sessions if isinstance(sessions, list) else []


def _save_sessions(sessions: list[dict[str, Any]]) -> None:
    _analytics_path().write_text(json.dumps(sessions[-MAX_SESSIONS:], indent=2))


def _new_session(session_id: str) -> dict[str, Any]:
    return {
        "session_id": session_id,
        "start_time": time.time(),
        "end_time": None,
        "events": [],
        "selected_perks": None,
        "initial_attributes": None,
        "final_attributes": None,
        "ending": None,
        "choices_made": 0,
        "completed": False,
    }


class SessionTelemetry:
    """Telemetry sink bound to one run slug."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    def track(self, event_type: str, data: dict[str, Any]) -> None:
        sessions = get_all_sessions()
        session = None
        if event_type != "game_start":
            session = next(
                (s for s in reversed(sessions)
                 if s["session_id"] == self.session_id and not s["completed"]),
                None,
            )
        if session is None:
            session = _new_session(self.session_id)
            sessions.append(session)

        session["events"].append({
            "type": event_type,
            "data": data,
            "timestamp": time.time(),
        })
        if event_type == "perks_selected":
            session["selected_perks"] = data.get("perks")
        elif event_type == "attributes_set":
            session["initial_attributes"] = data.get("attributes")
        elif event_type == "choice_made":
            session["choices_made"] += 1
        elif event_type == "game_end":
            session["ending"] = data.get("ending")
            session["final_attributes"] = data.get("attributes")
            session["completed"] = True
            session["end_time"] = time.time()
        _save_sessions(sessions)


def calculate_stats(sessions: list[dict[str, Any]]) -> dict[str, Any]:
    completed = [s for s in sessions if s.get("completed")]

    ending_distribution: dict[str, int] = {}
    for s in completed:
        if s.get("ending"):
            ending_distribution[s["ending"]] = ending_distribution.get(s["ending"], 0) + 1

    perk_popularity: dict[str, int] = {}
    for s in sessions:
        for perk in s.get("selected_perks") or []:
            perk_popularity[perk] = perk_popularity.get(perk, 0) + 1

    choice_distribution: dict[str, dict[str, int]] = {}
    for s in sessions:
        for event in s.get("events", []):
            if event["type"] != "choice_made":
                continue
            event_id = event["data"].get("event_id")
            choice_id = event["data"].get("choice_id")
            if event_id and choice_id:
                counts = choice_distribution.setdefault(event_id, {})
                counts[choice_id] = counts.get(choice_id, 0) + 1

    daily_stats: dict[str, dict[str, int]] = {}
    for s in sessions:
        day = datetime.fromtimestamp(s["start_time"], timezone.utc).date().isoformat()
        entry = daily_stats.setdefault(day, {"sessions": 0, "completions": 0})
        entry["sessions"] += 1
        if s.get("completed"):
            entry["completions"] += 1

    play_minutes = [
        (s["end_time"] - s["start_time"]) / 60
        for s in completed
        if s.get("end_time")
    ]

    return {
        "total_sessions": len(sessions),
        "completed_games": len(completed),
        "completion_rate": len(completed) / len(sessions) * 100 if sessions else 0,
        "average_play_time": sum(play_minutes) / len(play_minutes) if play_minutes else 0,
        "ending_distribution": ending_distribution,
        "perk_popularity": perk_popularity,
        "choice_distribution": choice_distribution,
        "daily_stats": daily_stats,
    }


def get_stats() -> dict[str, Any]:
    return calculate_stats(get_all_sessions())


def export_data() -> str:
    sessions = get_all_sessions()
    return json.dumps({
        "sessions": sessions,
        "stats": calculate_stats(sessions),
        "export_time": datetime.now(timezone.utc).isoformat(),
    }, indent=2)


def clear_data() -> None:
    path = _analytics_path()
    if path.is_file():
        path.unlink()
