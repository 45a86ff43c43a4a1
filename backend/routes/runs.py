"""Run lifecycle endpoints: create, perks, attributes, events, choices, saves."""

from typing import Any

from fastapi import APIRouter, HTTPException

from backend import storage
from backend.game import build_engine
from hengdian import ContentError, EngineError, InvalidPhaseError, RunEngine, RunState

from .models import AllocateAttributes, ChoiceBody, CreateRun, ImportRun, SelectPerks

router = APIRouter()

# Never shown to the player: the odds and payoff of the hidden roll.
_HIDDEN_CHOICE_FIELDS = {"hidden_chance", "hidden_consequences", "visible_condition"}


def _run_view(engine: RunEngine, slug: str, state: RunState) -> dict[str, Any]:
    ending = engine.ending(state)
    event = state.current_event
    hidden = engine.last_hidden_effect(state)
    offered = engine.offered_perks(state) if state.phase == "choosing_perks" else []
    return {
        "slug": slug,
        "title": storage.get_run_title(slug),
        "state": {
            **state.model_dump(mode="json", exclude={"current_event"}),
            "current_event": event.model_dump(
                exclude={"choices": {"__all__": _HIDDEN_CHOICE_FIELDS}}
            ) if event else None,
        },
        "offered_perks": [p.model_dump() for p in offered],
        "bonus_points": engine.perks.bonus_point_total(state.selected_perks),
        "visible_choices": [
            c.model_dump(exclude=_HIDDEN_CHOICE_FIELDS) for c in engine.visible_choices(state)
        ],
        "rating": engine.rating(state).model_dump(),
        "stage": engine.stage_progress(state).model_dump(),
        "ending": ending.model_dump() if ending else None,
        "hidden_effect": hidden.model_dump(exclude_none=True) if hidden else None,
    }


def _load(engine: RunEngine, slug: str) -> RunState:
    state = storage.load_run(slug)
    if state is None:
        raise HTTPException(404, "Run not found")
    return engine.restore(state)


def _save(slug: str, state: RunState, title: str | None = None) -> None:
    if not storage.save_run(slug, state, title=title):
        raise HTTPException(500, "Failed to save run")


def _transition(fn, *args) -> RunState:
    """Run an engine transition, mapping engine errors to HTTP errors."""
    try:
        return fn(*args)
    except InvalidPhaseError as e:
        raise HTTPException(409, str(e))
    except EngineError as e:
        raise HTTPException(400, str(e))
    except ContentError as e:
        raise HTTPException(500, f"Content error: {e}")


@router.get("/runs")
async def list_runs():
    """List all saved runs."""
    return storage.list_runs()


@router.post("/runs")
async def create_run(body: CreateRun):
    """Start a new run and offer perks to choose from."""
    title = body.title or "Run"
    slug = storage.new_run_slug(title)
    engine = build_engine(slug)
    state = _transition(engine.start, engine.create(body.seed))
    _save(slug, state, title=title)
    return _run_view(engine, slug, state)


@router.post("/runs/import")
async def import_run(body: ImportRun):
    """Import a run exported by GET /runs/{slug}/export."""
    slug = storage.new_run_slug(body.title or "Imported run")
    if not storage.import_run(slug, body.data):
        raise HTTPException(400, "Invalid save data")
    engine = build_engine(slug)
    return _run_view(engine, slug, _load(engine, slug))


@router.get("/runs/{slug}")
async def get_run(slug: str):
    """Get a run's state and what the player can do next."""
    engine = build_engine(slug)
    return _run_view(engine, slug, _load(engine, slug))


@router.delete("/runs/{slug}")
async def delete_run(slug: str):
    """Delete a saved run."""
    if not storage.delete_run(slug):
        raise HTTPException(404, "Run not found")
    return {"ok": True}


@router.post("/runs/{slug}/perks")
async def choose_perks(slug: str, body: SelectPerks):
    """Pick the starting perks."""
    engine = build_engine(slug)
    state = _transition(engine.choose_perks, _load(engine, slug), body.perk_ids)
    _save(slug, state)
    return _run_view(engine, slug, state)


@router.post("/runs/{slug}/attributes")
async def allocate_attributes(slug: str, body: AllocateAttributes):
    """Allocate attribute points, then put the first event in flight."""
    engine = build_engine(slug)
    state = _transition(engine.allocate_attributes, _load(engine, slug), body.attributes)
    state = _transition(engine.advance, state)
    _save(slug, state)
    return _run_view(engine, slug, state)


@router.post("/runs/{slug}/advance")
async def advance(slug: str):
    """Draw the next event, or resolve the ending when none is left."""
    engine = build_engine(slug)
    state = _transition(engine.advance, _load(engine, slug))
    _save(slug, state)
    return _run_view(engine, slug, state)


@router.post("/runs/{slug}/choices")
async def make_choice(slug: str, body: ChoiceBody):
    """Resolve a choice on the current event and move on to the next one."""
    engine = build_engine(slug)
    state = _transition(engine.play_choice, _load(engine, slug), body.choice_id)
    _save(slug, state)
    return _run_view(engine, slug, state)


@router.post("/runs/{slug}/replay")
async def replay_run(slug: str):
    """Replay the run from its seed and history and compare with the saved state."""
    engine = build_engine(slug)
    state = _load(engine, slug)
    replayed = _transition(engine.replay_history, state)
    return {
        "phase": replayed.phase,
        "ending": replayed.ending,
        "matches": replayed == state,
    }


@router.get("/runs/{slug}/export")
async def export_run(slug: str):
    """Export a run as a base64 string."""
    data = storage.export_run(slug)
    if data is None:
        raise HTTPException(404, "Run not found")
    return {"data": data}
