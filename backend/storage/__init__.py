"""File-based JSON storage.

Data layout:
  data/
    saves/               One envelope per run
      <slug>.json        {"slug", "title", "state", "timestamp", "version"}
    config.json          App settings (sound, text speed, engine overrides)
    analytics.json       Recent play sessions (telemetry)
  presets/
    content/             Read-only catalogs
      perks.json
      endings.json       Endings plus priority / fallback / game-over ids
      events/*.json      Events, read in filename order

Slug rules: title → Unicode normalize → strip non-ASCII → lowercase →
replace non-alnum runs with hyphen → strip leading/trailing hyphens.
New runs get -2, -3, ... on collision.

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates: engine overrides merged key by key
and validated as a GameConfig, scalars overwritten.

Saves never raise on a bad file: load_run() returns None and save_run()
returns False, with a logged warning.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    content_dir,
    data_dir,
    init_storage,
    presets_dir,
    saves_dir,
    slugify,
)

from .content import (  # noqa: F401
    get_content,
)

from .saves import (  # noqa: F401
    SAVE_VERSION,
    delete_run,
    export_run,
    get_run_title,
    get_save_timestamp,
    import_run,
    list_runs,
    load_run,
    new_run_slug,
    run_exists,
    save_run,
)

from .analytics import (  # noqa: F401
    SessionTelemetry,
    calculate_stats,
    clear_data,
    export_data,
    get_all_sessions,
    get_stats,
)

from .config import (  # noqa: F401
    get_config,
    get_game_config,
    update_config,
)
