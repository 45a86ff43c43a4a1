"""Global app settings (sound, text speed) and engine rule overrides."""

import json
from pathlib import Path
from typing import Any

from hengdian.models import DEFAULT_GAME_CONFIG, GameConfig

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "sound_enabled": True,
    "music_enabled": True,
    "text_speed": "normal",
    "engine": {},
}

TEXT_SPEEDS = ("slow", "normal", "fast")


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = {
        "sound_enabled": _CONFIG_DEFAULTS["sound_enabled"],
        "music_enabled": _CONFIG_DEFAULTS["music_enabled"],
        "text_speed": _CONFIG_DEFAULTS["text_speed"],
        "engine": dict(_CONFIG_DEFAULTS["engine"]),
    }
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for key in ("sound_enabled", "music_enabled"):
            if key in stored:
                config[key] = bool(stored[key])
        if stored.get("text_speed") in TEXT_SPEEDS:
            config["text_speed"] = stored["text_speed"]
        if isinstance(stored.get("engine"), dict):
            config["engine"].update(stored["engine"])
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    Engine overrides are merged key by key and must still form a valid
    GameConfig; a ValueError is raised otherwise and nothing is written.
    """
    config = get_config()
    for key in ("sound_enabled", "music_enabled"):
        if key in fields:
            config[key] = bool(fields[key])
    if "text_speed" in fields:
        if fields["text_speed"] not in TEXT_SPEEDS:
            raise ValueError(f"text_speed must be one of {', '.join(TEXT_SPEEDS)}")
        config["text_speed"] = fields["text_speed"]
    if "engine" in fields:
        engine = _merge_engine(config["engine"], fields["engine"])
        _game_config(engine)
        config["engine"] = engine
    _config_path().write_text(json.dumps(config, indent=2))
    return config


def _merge_engine(current: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Top-level keys replace; events_per_stage merges stage by stage."""
    engine = {**current, **overrides}
    stages = overrides.get("events_per_stage")
    if isinstance(stages, dict) and isinstance(current.get("events_per_stage"), dict):
        merged = dict(current["events_per_stage"])
        for stage, limits in stages.items():
            if isinstance(limits, dict) and isinstance(merged.get(stage), dict):
                merged[stage] = {**merged[stage], **limits}
            else:
                merged[stage] = limits
        engine["events_per_stage"] = merged
    return engine


def _game_config(engine: dict[str, Any]) -> GameConfig:
    """Validate overrides over the defaults; stages not overridden keep their limits."""
    defaults = DEFAULT_GAME_CONFIG.model_dump()
    engine = _merge_engine({"events_per_stage": defaults["events_per_stage"]}, engine)
    return GameConfig.model_validate(engine)


def get_game_config() -> GameConfig:
    """Engine rules: defaults with any stored overrides applied."""
    return _game_config(get_config()["engine"])
