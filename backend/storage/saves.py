"""Run save slots (one JSON envelope per run).

Envelope: {"slug", "title", "state": RunState, "timestamp", "version"}.

Failures are reported as False / None and logged; nothing here raises on a
bad or missing file, so callers treat an unreadable save as "no prior run".
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from hengdian.models import RunState

from .core import saves_dir, slugify

logger = logging.getLogger(__name__)

SAVE_VERSION = "1.0.0"


def _save_path(slug: str) -> Path:
    return saves_dir() / f"{slug}.json"


def _read_envelope(path: Path) -> dict[str, Any] | None:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Unreadable save {path.name}: {e}")
        return None
    if not isinstance(data, dict) or "state" not in data:
        logger.warning(f"Save {path.name} has no state")
        return None
    return data


def new_run_slug(title: str) -> str:
    """Slug for a new run, suffixed -2, -3, ... if the title is taken."""
    base_slug = slugify(title)
    target_slug = base_slug
    counter = 2
    while _save_path(target_slug).exists():
        target_slug = f"{base_slug}-{counter}"
        counter += 1
    return target_slug


def list_runs() -> list[dict[str, Any]]:
    """Summaries of every readable save, sorted by slug."""
    results = []
    for path in sorted(saves_dir().glob("*.json")):
        data = _read_envelope(path)
        if data is None:
            continue
        state = data["state"]
        results.append({
            "slug": path.stem,
            "title": data.get("title", path.stem),
            "phase": state.get("phase"),
            "stage": state.get("current_stage"),
            "ending": state.get("ending"),
            "timestamp": data.get("timestamp"),
        })
    return results


def save_run(slug: str, state: RunState, title: str | None = None) -> bool:
    """Write the run. Keeps the stored title unless a new one is given."""
    path = _save_path(slug)
    if title is None and path.is_file():
        existing = _read_envelope(path)
        if existing is not None:
            title = existing.get("title")
    envelope = {
        "slug": slug,
        "title": title or slug,
        "state": state.model_dump(mode="json"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SAVE_VERSION,
    }
    try:
        path.write_text(json.dumps(envelope, indent=2))
    except OSError as e:
        logger.warning(f"Failed to save run {slug}: {e}")
        return False
    return True


def load_run(slug: str) -> RunState | None:
    path = _save_path(slug)
    if not path.is_file():
        return None
    data = _read_envelope(path)
    if data is None:
        return None
    try:
        return RunState.model_validate(data["state"])
    except ValidationError as e:
        logger.warning(f"Invalid state in save {slug}: {e}")
        return None


def get_run_title(slug: str) -> str | None:
    path = _save_path(slug)
    if not path.is_file():
        return None
    data = _read_envelope(path)
    return data.get("title", slug) if data else None


def run_exists(slug: str) -> bool:
    return _save_path(slug).is_file()


def delete_run(slug: str) -> bool:
    path = _save_path(slug)
    if not path.is_file():
        return False
    path.unlink()
    return True


def get_save_timestamp(slug: str) -> datetime | None:
    path = _save_path(slug)
    if not path.is_file():
        return None
    data = _read_envelope(path)
    if data is None or "timestamp" not in data:
        return None
    try:
        return datetime.fromisoformat(data["timestamp"])
    except (TypeError, ValueError):
        return None


def export_run(slug: str) -> str | None:
    """Base64 of the save file, for sharing or backup."""
    path = _save_path(slug)
    if not path.is_file():
        return None
    try:
        return base64.b64encode(path.read_bytes()).decode("ascii")
    except OSError as e:
        logger.warning(f"Failed to export run {slug}: {e}")
        return None


def import_run(slug: str, encoded: str) -> bool:
    """Store an exported save under ``slug``. Returns False if it does not validate."""
    try:
        raw = base64.b64decode(encoded, validate=True).decode("utf-8")
        data = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Import for {slug} is not a valid export: {e}")
        return False
    if not isinstance(data, dict) or not all(k in data for k in ("state", "timestamp", "version")):
        logger.warning(f"Import for {slug} is missing state, timestamp, or version")
        return False
    try:
        state = RunState.model_validate(data["state"])
    except ValidationError as e:
        logger.warning(f"Import for {slug} has an invalid state: {e}")
        return False
    return save_run(slug, state, title=data.get("title"))
