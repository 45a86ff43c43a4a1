"""Engine construction for request handlers.

Engines are cheap: catalogs come from the cached content, rules from the
stored config, and telemetry is bound to the run being played.
"""

from hengdian import RunEngine

from backend import storage


def build_engine(slug: str | None = None) -> RunEngine:
    telemetry = storage.SessionTelemetry(slug) if slug else None
    return RunEngine.from_content(
        storage.get_content(),
        config=storage.get_game_config(),
        telemetry=telemetry,
    )
