"""Tests for storyloom.engine — the traversal state machine."""

import pytest

from storyloom.engine import (
    DEFAULT_BACKGROUND,
    DEFAULT_ENDING_TEXT,
    EngineStateError,
    TraversalEngine,
)
from storyloom.generator import MissingEntryScene, ensure_player_character
from storyloom.models import Choice, RelationshipEffect, StoryDocument


@pytest.fixture
def engine(document: StoryDocument) -> TraversalEngine:
    e = TraversalEngine()
    e.start(ensure_player_character(document))
    return e


def _choice(next_scene_id: str | None, *effects: tuple[str, int]) -> Choice:
    return Choice(
        text="pick",
        consequence="",
        next_scene_id=next_scene_id,
        relationship_effects=[RelationshipEffect(character=c, change=d) for c, d in effects] or None,
    )


# ── start / reset ────────────────────────────────────────


def test_new_engine_is_idle():
    engine = TraversalEngine()
    assert engine.state == "idle"
    assert engine.current_scene is None
    assert engine.background_image == DEFAULT_BACKGROUND
    assert engine.ending_text is None


def test_start_positions_on_scene_1(engine: TraversalEngine):
    assert engine.state == "active"
    assert engine.current_scene_id == "scene_1"
    assert engine.current_scene.title == "Landfall"


def test_start_seeds_ledger_without_player(engine: TraversalEngine):
    assert engine.ledger.scores() == {"Kael": 0, "Anya": 0}


def test_start_uses_entry_background(engine: TraversalEngine):
    assert engine.background_image == "https://picsum.photos/seed/jetty/1920/1080"


def test_start_default_background_when_entry_has_none(story_payload):
    story_payload["scenes"]["scene_1"]["visuals"]["backgroundImage"] = ""
    engine = TraversalEngine()
    engine.start(StoryDocument.model_validate(story_payload))
    assert engine.background_image == DEFAULT_BACKGROUND


def test_start_without_entry_scene(story_payload):
    del story_payload["scenes"]["scene_1"]
    engine = TraversalEngine()
    with pytest.raises(MissingEntryScene):
        engine.start(StoryDocument.model_validate(story_payload))
    assert engine.state == "idle"


def test_reset_returns_to_idle(engine: TraversalEngine):
    engine.choose(0)
    engine.reset()
    assert engine.state == "idle"
    assert engine.document is None
    assert engine.current_scene_id is None
    assert len(engine.ledger) == 0
    assert engine.background_image == DEFAULT_BACKGROUND


# ── apply_choice: advancing ──────────────────────────────


def test_go_to_scene_2_with_effect(engine: TraversalEngine):
    outcome = engine.apply_choice(_choice("scene_2", ("Kael", 1)))
    assert not outcome.ended
    assert engine.state == "active"
    assert engine.current_scene_id == "scene_2"
    assert engine.ledger["Kael"] == 1
    assert engine.ledger["Anya"] == 0


def test_existing_target_always_advances(engine: TraversalEngine):
    for target in ["scene_2", "scene_1", "scene_1", "scene_2"]:
        engine.apply_choice(_choice(target))
        assert engine.current_scene_id == target
        assert engine.state == "active"


def test_background_kept_when_next_scene_has_none(engine: TraversalEngine):
    before = engine.background_image
    engine.apply_choice(_choice("scene_2"))
    assert engine.background_image == before


def test_background_updated_when_next_scene_has_one(engine: TraversalEngine):
    engine.apply_choice(_choice("scene_2"))
    engine.apply_choice(_choice("scene_1"))
    assert engine.background_image == "https://picsum.photos/seed/jetty/1920/1080"


def test_effects_are_additive(engine: TraversalEngine):
    engine.apply_choice(_choice("scene_2", ("Kael", 2), ("Anya", -3)))
    engine.apply_choice(_choice("scene_1", ("Kael", 5)))
    assert engine.ledger.scores() == {"Kael": 7, "Anya": -3}


def test_unknown_character_effect_ignored(engine: TraversalEngine):
    engine.apply_choice(_choice("scene_2", ("Kale", 4), ("You", 1)))
    assert set(engine.ledger) == {"Kael", "Anya"}
    assert engine.ledger.scores() == {"Kael": 0, "Anya": 0}


def test_outcome_reports_applied_effects(engine: TraversalEngine):
    outcome = engine.apply_choice(_choice("scene_2", ("Nobody", 1), ("Anya", 2)))
    assert [e.character for e in outcome.applied_effects] == ["Anya"]


# ── apply_choice: endings ────────────────────────────────


def test_null_next_scene_ends(engine: TraversalEngine):
    engine.apply_choice(_choice("scene_2"))
    outcome = engine.apply_choice(_choice(None))
    assert outcome.ended
    assert engine.state == "ended"
    assert engine.ending_text == "The lamp room is dark."


def test_dangling_reference_ends_with_current_narration(engine: TraversalEngine):
    engine.apply_choice(_choice("scene_99"))
    assert engine.state == "ended"
    assert engine.current_scene_id == "scene_1"
    assert engine.ending_text == "Waves break over the jetty."


def test_effects_still_applied_on_ending(engine: TraversalEngine):
    engine.apply_choice(_choice(None, ("Anya", 2)))
    assert engine.ledger["Anya"] == 2


def test_empty_narration_uses_default_ending(story_payload):
    story_payload["scenes"]["scene_1"]["narration"] = ""
    engine = TraversalEngine()
    engine.start(StoryDocument.model_validate(story_payload))
    engine.choose(1)
    assert engine.ending_text == DEFAULT_ENDING_TEXT


def test_choose_after_end_raises(engine: TraversalEngine):
    engine.choose(1)
    with pytest.raises(EngineStateError):
        engine.choose(0)


# ── choose ───────────────────────────────────────────────


def test_choose_by_index(engine: TraversalEngine):
    engine.choose(0)
    assert engine.current_scene_id == "scene_2"
    assert engine.ledger["Kael"] == 1


def test_choose_dangling_from_document(engine: TraversalEngine):
    engine.choose(2)
    assert engine.state == "ended"


def test_choose_out_of_range(engine: TraversalEngine):
    with pytest.raises(IndexError):
        engine.choose(3)
    with pytest.raises(IndexError):
        engine.choose(-1)
    assert engine.current_scene_id == "scene_1"


def test_choose_while_idle_raises():
    with pytest.raises(EngineStateError):
        TraversalEngine().choose(0)


def test_apply_choice_while_idle_raises():
    with pytest.raises(EngineStateError):
        TraversalEngine().apply_choice(_choice("scene_2"))


# ── snapshot / restore ───────────────────────────────────


def test_snapshot_captures_session(engine: TraversalEngine):
    engine.choose(0)
    state = engine.snapshot()
    assert state.current_scene_id == "scene_2"
    assert state.ledger == {"Kael": 1, "Anya": 0}
    assert state.background_image == "https://picsum.photos/seed/jetty/1920/1080"
    assert state.document is engine.document


def test_snapshot_while_idle_raises():
    with pytest.raises(EngineStateError):
        TraversalEngine().snapshot()


def test_restore_resumes_exactly(engine: TraversalEngine):
    engine.choose(0)
    state = engine.snapshot()

    other = TraversalEngine()
    other.restore(state)
    assert other.state == "active"
    assert other.current_scene_id == "scene_2"
    assert other.ledger == engine.ledger
    assert other.background_image == engine.background_image
    assert other.snapshot() == state


def test_snapshot_isolated_from_later_choices(engine: TraversalEngine):
    state = engine.snapshot()
    engine.choose(0)
    assert state.ledger == {"Kael": 0, "Anya": 0}
    assert state.current_scene_id == "scene_1"
