"""Tests for hengdian.engine: the run lifecycle against the shipped content."""

from unittest.mock import MagicMock

import pytest

from hengdian import (
    ContentError,
    InvalidChoiceError,
    InvalidDistributionError,
    InvalidPhaseError,
    InvalidSelectionError,
    RunEngine,
    RunState,
)
from hengdian.models import (
    AttributeChanges,
    Attributes,
    Choice,
    Consequences,
    Event,
    HistoryEntry,
)
from hengdian.rng import Random

PERKS = ["photogenic", "hometown_contact", "frugal"]  # +5 bonus points
ALLOCATION = Attributes(appearance=6, acting=5, connections=5, savings=5, resilience=4)


def in_progress(engine: RunEngine, seed: int = 42) -> RunState:
    """A run that has just finished allocation; no event in flight yet."""
    state = engine.start(engine.create(seed))
    state = engine.choose_perks(state, PERKS)
    return engine.allocate_attributes(state, ALLOCATION)


def with_event(state: RunState, choice: Choice, **updates) -> RunState:
    event = Event(id="test_event", stage=state.current_stage, title="Test", choices=[choice])
    return state.model_copy(update={"current_event": event, **updates})


def play_to_end(engine: RunEngine, seed: int) -> RunState:
    """Always take the first visible choice until the run concludes."""
    state = engine.advance(in_progress(engine, seed))
    for _ in range(200):
        if state.phase == "concluded":
            return state
        choices = engine.visible_choices(state) or state.current_event.choices
        state = engine.play_choice(state, choices[0].id)
    raise AssertionError("run did not conclude")


class TestSetup:
    def test_create(self, engine) -> None:
        state = engine.create(123)
        assert state.phase == "not_started"
        assert state.seed == 123
        assert state.attributes == engine.config.baseline_attributes
        assert state.rng_state == Random(123).get_state()

    def test_create_masks_seed(self, engine) -> None:
        assert engine.create(2**32 + 5).seed == 5

    def test_create_without_seed(self, engine) -> None:
        assert 0 <= engine.create().seed <= 0xFFFFFFFF

    def test_start_offers_perks(self, engine) -> None:
        created = engine.create(1)
        state = engine.start(created)
        assert state.phase == "choosing_perks"
        assert len(state.offered_perks) == 10
        assert len(set(state.offered_perks)) == 10
        assert all(engine.perks.get(p).category == "initial" for p in state.offered_perks)
        assert created.phase == "not_started"

    def test_start_is_deterministic(self, engine) -> None:
        a = engine.start(engine.create(77))
        b = engine.start(engine.create(77))
        assert a.offered_perks == b.offered_perks
        assert a.rng_state == b.rng_state

    def test_start_twice_rejected(self, engine) -> None:
        state = engine.start(engine.create(1))
        with pytest.raises(InvalidPhaseError):
            engine.start(state)

    def test_choose_perks_applies_bonuses(self, engine) -> None:
        state = engine.choose_perks(engine.start(engine.create(1)), PERKS)
        assert state.phase == "allocating_attributes"
        assert state.selected_perks == tuple(PERKS)
        assert state.attributes == Attributes(
            appearance=7, acting=5, connections=5, savings=6, resilience=5
        )

    def test_conflicting_perks_rejected(self, engine) -> None:
        state = engine.start(engine.create(1))
        with pytest.raises(InvalidSelectionError):
            engine.choose_perks(state, ["nest_egg", "broke_arrival", "frugal"])
        assert state.phase == "choosing_perks"

    def test_unlockable_perk_rejected_at_start(self, engine) -> None:
        state = engine.start(engine.create(1))
        with pytest.raises(InvalidSelectionError):
            engine.choose_perks(state, ["directors_pet", "photogenic", "frugal"])

    def test_wrong_perk_count_rejected(self, engine) -> None:
        with pytest.raises(InvalidSelectionError):
            engine.choose_perks(engine.start(engine.create(1)), ["frugal"])

    def test_allocate(self, engine) -> None:
        state = in_progress(engine)
        assert state.phase == "in_progress"
        assert state.attributes == ALLOCATION
        assert state.initial_attributes == ALLOCATION
        assert state.current_event is None

    def test_allocation_must_include_bonus_points(self, engine) -> None:
        state = engine.choose_perks(engine.start(engine.create(1)), PERKS)
        flat = Attributes(appearance=4, acting=4, connections=4, savings=4, resilience=4)
        with pytest.raises(InvalidDistributionError):
            engine.allocate_attributes(state, flat)

    def test_allocation_without_bonus_perks(self, engine) -> None:
        state = engine.start(engine.create(1))
        state = engine.choose_perks(state, ["lucky_star", "martial_arts", "phone_addict"])
        flat = Attributes(appearance=4, acting=4, connections=4, savings=4, resilience=4)
        assert engine.allocate_attributes(state, flat).phase == "in_progress"

    def test_allocate_in_wrong_phase(self, engine) -> None:
        with pytest.raises(InvalidPhaseError):
            engine.allocate_attributes(engine.start(engine.create(1)), ALLOCATION)


class TestTurns:
    def test_first_event_is_required_arrival(self, engine) -> None:
        state = engine.advance(in_progress(engine))
        assert state.current_event.id == "landing_arrival"

    def test_advance_with_event_in_flight_is_a_no_op(self, engine) -> None:
        state = engine.advance(in_progress(engine))
        assert engine.advance(state) is state

    def test_resolve_without_event(self, engine) -> None:
        with pytest.raises(InvalidChoiceError):
            engine.resolve_choice(in_progress(engine), "find_hostel")

    def test_resolve_unknown_choice(self, engine) -> None:
        state = engine.advance(in_progress(engine))
        with pytest.raises(InvalidChoiceError):
            engine.resolve_choice(state, "fly_home")
        assert state.current_event.id == "landing_arrival"

    def test_resolve_choice(self, engine) -> None:
        before = engine.advance(in_progress(engine))
        state = engine.resolve_choice(before, "find_hostel")
        assert state.attributes.resilience == ALLOCATION.resilience + 1
        assert state.current_event is None
        assert state.stage_event_count == 1
        assert state.current_stage == "landing"
        assert state.history[-1].event_id == "landing_arrival"
        assert state.history[-1].choice_id == "find_hostel"
        assert before.history == ()
        assert before.attributes == ALLOCATION

    def test_play_choice_draws_next_event(self, engine) -> None:
        state = engine.play_choice(engine.advance(in_progress(engine)), "find_hostel")
        assert state.current_event is not None
        assert state.current_event.id != "landing_arrival"

    def test_visible_choices_without_event(self, engine) -> None:
        assert engine.visible_choices(in_progress(engine)) == []

    def test_stage_progress(self, engine) -> None:
        progress = engine.stage_progress(in_progress(engine))
        assert progress.current == 1
        assert progress.total == 5
        assert progress.stage == "landing"

    def test_rating(self, engine) -> None:
        assert engine.rating(in_progress(engine)).total == 25


class TestConsequences:
    def test_hidden_effect_applied(self, engine) -> None:
        choice = Choice(
            id="gamble", text="Gamble",
            consequences=Consequences(attribute_changes=AttributeChanges(savings=-1)),
            hidden_chance=1.0,
            hidden_consequences=Consequences(
                attribute_changes=AttributeChanges(savings=3), set_flags=["lucky_break"]
            ),
        )
        state = engine.resolve_choice(with_event(in_progress(engine), choice), "gamble")
        assert state.attributes.savings == ALLOCATION.savings + 2
        assert state.flags == {"lucky_break": True}
        assert state.history[-1].hidden_triggered
        with pytest.raises(ContentError):
            engine.last_hidden_effect(state)

    def test_last_hidden_effect_from_catalog(self, engine) -> None:
        state = engine.advance(in_progress(engine))
        assert engine.last_hidden_effect(state) is None
        for seed in range(50):
            rolled = engine.resolve_choice(
                state.model_copy(update={"rng_state": Random(seed).get_state()}),
                "follow_lanyard",
            )
            if rolled.history[-1].hidden_triggered:
                assert engine.last_hidden_effect(rolled) == AttributeChanges(connections=1)
                return
        pytest.fail("hidden effect never triggered")

    def test_unlock_perk(self, engine) -> None:
        choice = Choice(id="train", text="Train",
                        consequences=Consequences(unlock_perks=["stunt_certified"]))
        state = engine.resolve_choice(with_event(in_progress(engine), choice), "train")
        assert state.unlocked_perks == ("stunt_certified",)
        assert "stunt_certified" in state.perk_ids

    def test_unlock_unknown_perk(self, engine) -> None:
        choice = Choice(id="train", text="Train",
                        consequences=Consequences(unlock_perks=["jetpack"]))
        with pytest.raises(ContentError):
            engine.resolve_choice(with_event(in_progress(engine), choice), "train")

    def test_direct_ending_trigger(self, engine) -> None:
        choice = Choice(id="quit", text="Quit",
                        consequences=Consequences(trigger_ending="ending_crew"))
        state = engine.resolve_choice(with_event(in_progress(engine), choice), "quit")
        assert state.phase == "concluded"
        assert state.ending == "ending_crew"
        assert engine.ending(state).name == "Behind the Camera"

    def test_unknown_ending_trigger(self, engine) -> None:
        choice = Choice(id="quit", text="Quit",
                        consequences=Consequences(trigger_ending="ending_moon"))
        before = with_event(in_progress(engine), choice)
        with pytest.raises(ContentError):
            engine.resolve_choice(before, "quit")
        assert before.phase == "in_progress"

    def test_depletion_beats_breakdown(self, engine) -> None:
        choice = Choice(id="crash", text="Crash", consequences=Consequences(
            attribute_changes=AttributeChanges(savings=-10, resilience=-10)
        ))
        state = engine.resolve_choice(with_event(in_progress(engine), choice), "crash")
        assert state.phase == "concluded"
        assert state.ending == "ending_home"

    def test_breakdown(self, engine) -> None:
        choice = Choice(id="crack", text="Crack", consequences=Consequences(
            attribute_changes=AttributeChanges(resilience=-10)
        ))
        state = engine.resolve_choice(with_event(in_progress(engine), choice), "crack")
        assert state.ending == "ending_debt"
        assert state.attributes.resilience == 0


class TestStages:
    def test_stage_max_forces_advance(self, engine) -> None:
        choice = Choice(id="ok", text="OK")
        state = with_event(in_progress(engine), choice, stage_event_count=4)
        state = engine.resolve_choice(state, "ok")
        assert state.current_stage == "entry"
        assert state.stage_event_count == 0
        assert state.phase == "in_progress"

    def test_last_stage_resolves_ending(self, engine) -> None:
        choice = Choice(id="ok", text="OK")
        state = in_progress(engine).model_copy(update={"current_stage": "destiny"})
        state = engine.resolve_choice(with_event(state, choice, stage_event_count=3), "ok")
        assert state.phase == "concluded"
        assert state.ending in engine.endings

    def test_advance_with_nothing_left_resolves_ending(self, engine) -> None:
        state = in_progress(engine).model_copy(update={"current_stage": "destiny"})
        history = tuple(
            HistoryEntry(event_id=e.id, choice_id=e.choices[0].id, stage="destiny",
                         consequences=e.choices[0].consequences)
            for e in engine.events.events_for_stage("destiny")
        )
        state = engine.advance(state.model_copy(update={"history": history}))
        assert state.phase == "concluded"
        assert state.ending == "ending_veteran"


class TestTelemetry:
    def test_lifecycle_reported(self, content) -> None:
        telemetry = MagicMock()
        engine = RunEngine.from_content(content, telemetry=telemetry)
        play_to_end(engine, 5)
        types = [c.args[0] for c in telemetry.track.call_args_list]
        assert types[:3] == ["game_start", "perks_selected", "attributes_set"]
        assert "choice_made" in types
        assert types[-1] == "game_end"

    def test_failing_telemetry_is_ignored(self, content) -> None:
        telemetry = MagicMock()
        telemetry.track.side_effect = RuntimeError("disk full")
        engine = RunEngine.from_content(content, telemetry=telemetry)
        assert play_to_end(engine, 5).phase == "concluded"


class TestDeterminism:
    @pytest.mark.parametrize("seed", [1, 42, 2024, 0xDEADBEEF])
    def test_same_seed_same_run(self, engine, seed) -> None:
        assert play_to_end(engine, seed) == play_to_end(engine, seed)

    @pytest.mark.parametrize("seed", [3, 99, 31337])
    def test_replay_history_reproduces_run(self, engine, seed) -> None:
        final = play_to_end(engine, seed)
        replayed = engine.replay_history(final)
        assert replayed == final
        assert replayed.ending == final.ending

    def test_replay_mid_run(self, engine) -> None:
        state = engine.advance(in_progress(engine, 8))
        state = engine.play_choice(state, "find_hostel")
        assert engine.replay_history(state) == state

    def test_replay_before_allocation_rejected(self, engine) -> None:
        with pytest.raises(InvalidPhaseError):
            engine.replay_history(engine.start(engine.create(1)))

    def test_save_and_resume_mid_run(self, engine) -> None:
        state = engine.play_choice(engine.advance(in_progress(engine, 13)), "find_hostel")
        loaded = RunState.model_validate(state.model_dump(mode="json"))
        assert loaded == state
        choice = engine.visible_choices(state)[0].id
        assert engine.play_choice(loaded, choice) == engine.play_choice(state, choice)

    def test_restore_reseeds_missing_stream(self, engine) -> None:
        state = in_progress(engine).model_copy(update={"rng_state": None})
        assert engine.restore(state).rng_state == Random(state.seed).get_state()

    def test_restore_keeps_stream(self, engine) -> None:
        state = in_progress(engine)
        assert engine.restore(state) is state
