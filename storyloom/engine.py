"""Traversal engine — walks the story graph one choice at a time.

States:

    idle    no story loaded
    active  positioned on a scene, accepting choices
    ended   a terminal choice was taken, or a choice pointed at a scene
            that does not exist

The generated graph is untrusted: dangling next-scene ids end the story and
unknown relationship names are skipped. Neither raises. Only calling the
engine in the wrong state (a caller bug) raises EngineStateError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from storyloom.generator import MissingEntryScene
from storyloom.ledger import RelationshipLedger
from storyloom.models import (
    ENTRY_SCENE_ID,
    PLAYER_NAME,
    Choice,
    RelationshipEffect,
    Scene,
    SessionState,
    StoryDocument,
)

logger = logging.getLogger(__name__)

EngineState = Literal["idle", "active", "ended"]

DEFAULT_BACKGROUND = "https://picsum.photos/seed/start/1920/1080"
DEFAULT_ENDING_TEXT = "The story concludes."


class EngineStateError(RuntimeError):
    """Raised when an operation is not valid in the engine's current state."""


@dataclass(frozen=True)
class ChoiceOutcome:
    """What applying one choice did."""

    ended: bool
    scene_id: str
    applied_effects: list[RelationshipEffect] = field(default_factory=list)


class TraversalEngine:
    def __init__(self) -> None:
        self._state: EngineState = "idle"
        self._document: StoryDocument | None = None
        self._scene_id: str | None = None
        self._ledger = RelationshipLedger()
        self._background = DEFAULT_BACKGROUND

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def document(self) -> StoryDocument | None:
        return self._document

    @property
    def current_scene_id(self) -> str | None:
        return self._scene_id

    @property
    def current_scene(self) -> Scene | None:
        if self._document is None:
            return None
        return self._document.scene(self._scene_id)

    @property
    def ledger(self) -> RelationshipLedger:
        return self._ledger.copy()

    @property
    def background_image(self) -> str:
        return self._background

    @property
    def ending_text(self) -> str | None:
        """Narration of the scene the story ended on; None unless ended."""
        if self._state != "ended":
            return None
        scene = self.current_scene
        if scene is None or not scene.narration:
            return DEFAULT_ENDING_TEXT
        return scene.narration

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, document: StoryDocument) -> None:
        """Position the engine on scene_1 of a fresh story."""
        entry = document.entry_scene
        if entry is None:
            raise MissingEntryScene(f"Story has no entry scene {ENTRY_SCENE_ID!r}")

        self._document = document
        self._scene_id = ENTRY_SCENE_ID
        self._ledger = RelationshipLedger.initialize(document.characters, PLAYER_NAME)
        self._background = entry.visuals.background_image or DEFAULT_BACKGROUND
        self._state = "active"
        logger.info("started story %r with %d tracked characters", document.title, len(self._ledger))

    def restore(self, saved: SessionState) -> None:
        """Resume a saved session exactly where it left off."""
        self._document = saved.document
        self._scene_id = saved.current_scene_id
        self._ledger = RelationshipLedger.from_scores(saved.ledger)
        self._background = saved.background_image
        self._state = "active"
        logger.info("restored story %r at %s", saved.document.title, saved.current_scene_id)

    def apply_choice(self, choice: Choice) -> ChoiceOutcome:
        """Apply relationship effects, then advance or end.

        The new ledger and position are computed first and committed
        together.
        """
        if self._state != "active" or self._document is None or self._scene_id is None:
            raise EngineStateError(f"Cannot choose while {self._state}")

        ledger = self._ledger.copy()
        applied = ledger.apply(choice.relationship_effects)

        target = self._document.scene(choice.next_scene_id)
        if target is None:
            if not choice.is_terminal:
                logger.info(
                    "choice %r points at missing scene %r; ending story",
                    choice.text, choice.next_scene_id,
                )
            self._ledger = ledger
            self._state = "ended"
            logger.debug("story ended at %s", self._scene_id)
            return ChoiceOutcome(ended=True, scene_id=self._scene_id, applied_effects=applied)

        self._ledger = ledger
        self._scene_id = choice.next_scene_id
        if target.visuals.background_image:
            self._background = target.visuals.background_image
        logger.debug("advanced to %s", self._scene_id)
        return ChoiceOutcome(ended=False, scene_id=self._scene_id, applied_effects=applied)

    def choose(self, index: int) -> ChoiceOutcome:
        """Apply the current scene's choice at the given position."""
        scene = self.current_scene
        if self._state != "active" or scene is None:
            raise EngineStateError(f"Cannot choose while {self._state}")
        if not 0 <= index < len(scene.choices):
            raise IndexError(f"Scene {scene.id!r} has no choice {index}")
        return self.apply_choice(scene.choices[index])

    def reset(self) -> None:
        self._state = "idle"
        self._document = None
        self._scene_id = None
        self._ledger = RelationshipLedger()
        self._background = DEFAULT_BACKGROUND

    def snapshot(self) -> SessionState:
        """Capture the full session for persistence."""
        if self._document is None or self._scene_id is None:
            raise EngineStateError("No story loaded")
        return SessionState(
            document=self._document,
            current_scene_id=self._scene_id,
            ledger=self._ledger.scores(),
            background_image=self._background,
        )
