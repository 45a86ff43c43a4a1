"""Tests for run save slots: save/load, listing, export/import."""

import base64
import json

from backend import storage
from hengdian import RunEngine

PERKS = ["photogenic", "hometown_contact", "frugal"]


def started_run(content, seed=42):
    engine = RunEngine.from_content(content)
    return engine.start(engine.create(seed))


def test_save_and_load_roundtrip(content):
    state = started_run(content)
    assert storage.save_run("first-run", state, title="First Run")
    loaded = storage.load_run("first-run")
    assert loaded == state
    assert storage.get_run_title("first-run") == "First Run"


def test_envelope_fields(content):
    storage.save_run("run", started_run(content))
    data = json.loads((storage.saves_dir() / "run.json").read_text())
    assert data["version"] == storage.SAVE_VERSION
    assert data["slug"] == "run"
    assert data["title"] == "run"
    assert data["state"]["phase"] == "choosing_perks"
    assert storage.get_save_timestamp("run") is not None


def test_save_keeps_title(content):
    state = started_run(content)
    storage.save_run("run", state, title="My Run")
    storage.save_run("run", state)
    assert storage.get_run_title("run") == "My Run"


def test_load_missing():
    assert storage.load_run("nowhere") is None
    assert storage.get_run_title("nowhere") is None
    assert storage.get_save_timestamp("nowhere") is None
    assert not storage.run_exists("nowhere")


def test_load_corrupt_file():
    (storage.saves_dir() / "broken.json").write_text("{oops")
    assert storage.load_run("broken") is None


def test_load_invalid_state():
    (storage.saves_dir() / "bad.json").write_text(json.dumps({"state": {"phase": "flying"}}))
    assert storage.load_run("bad") is None


def test_list_runs_skips_unreadable(content):
    storage.save_run("b-run", started_run(content), title="B")
    storage.save_run("a-run", started_run(content, seed=7), title="A")
    (storage.saves_dir() / "c-run.json").write_text("not json")
    runs = storage.list_runs()
    assert [r["slug"] for r in runs] == ["a-run", "b-run"]
    assert runs[0]["title"] == "A"
    assert runs[0]["phase"] == "choosing_perks"
    assert runs[0]["stage"] == "landing"
    assert runs[0]["ending"] is None


def test_new_run_slug_collisions(content):
    assert storage.new_run_slug("Lucky Run") == "lucky-run"
    storage.save_run("lucky-run", started_run(content))
    assert storage.new_run_slug("Lucky Run") == "lucky-run-2"
    storage.save_run("lucky-run-2", started_run(content))
    assert storage.new_run_slug("Lucky Run") == "lucky-run-3"


def test_delete_run(content):
    storage.save_run("run", started_run(content))
    assert storage.run_exists("run")
    assert storage.delete_run("run")
    assert not storage.run_exists("run")
    assert not storage.delete_run("run")


def test_export_import(content):
    engine = RunEngine.from_content(content)
    state = engine.choose_perks(started_run(content), PERKS)
    storage.save_run("run", state, title="Shared")
    encoded = storage.export_run("run")
    assert encoded is not None

    assert storage.import_run("copy", encoded)
    assert storage.load_run("copy") == state
    assert storage.get_run_title("copy") == "Shared"


def test_export_missing():
    assert storage.export_run("nowhere") is None


def test_import_rejects_garbage():
    assert not storage.import_run("x", "%%% not base64 %%%")
    assert not storage.import_run("x", base64.b64encode(b"plain text").decode())
    assert not storage.run_exists("x")


def test_import_rejects_missing_fields(content):
    payload = json.dumps({"state": started_run(content).model_dump(mode="json")})
    assert not storage.import_run("x", base64.b64encode(payload.encode()).decode())


def test_import_rejects_invalid_state():
    payload = json.dumps({"state": {"seed": "nope"}, "timestamp": "t", "version": "1.0.0"})
    assert not storage.import_run("x", base64.b64encode(payload.encode()).decode())
