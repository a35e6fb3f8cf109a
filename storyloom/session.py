"""Game session — the one object the presentation layer talks to.

Owns a TraversalEngine and a PersistenceManager and turns the UI's input
events (start, load, save, reset, choose) into engine transitions. Every
method runs to completion on the event loop before the next event is
handled; the only suspension point is the generator call inside
start_new(), during which the engine is idle so autosave does nothing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, Field

from storyloom.engine import DEFAULT_BACKGROUND, ChoiceOutcome, TraversalEngine
from storyloom.generator import GenerationError, StoryGenerator
from storyloom.models import Character, Scene
from storyloom.persistence import CorruptSave, PersistenceManager

logger = logging.getLogger(__name__)

SessionStatus = Literal["idle", "loading", "active", "ended"]

GENERATION_FAILED_MESSAGE = "Failed to generate story. Please check the API key and try again."
CORRUPT_SAVE_MESSAGE = "Failed to load saved game. The file might be corrupted."


class GenerationInProgress(RuntimeError):
    """Raised when a story is requested while another is being generated."""


class SessionView(BaseModel):
    """Read-only snapshot handed to the presentation layer."""

    status: SessionStatus
    title: str | None = None
    scene: Scene | None = None
    ending_text: str | None = None
    relationship_scores: dict[str, int] = Field(default_factory=dict)
    characters: list[Character] = Field(default_factory=list)
    background_image: str = DEFAULT_BACKGROUND
    last_autosave: int = 0
    save_exists: bool = False
    error: str | None = None


class GameSession:
    def __init__(
        self,
        persistence: PersistenceManager,
        generator_factory: Callable[[], StoryGenerator],
    ) -> None:
        self._persistence = persistence
        self._generator_factory = generator_factory
        self._engine = TraversalEngine()
        self._loading = False
        self._last_autosave = 0
        self.error: str | None = None

    @property
    def engine(self) -> TraversalEngine:
        return self._engine

    @property
    def status(self) -> SessionStatus:
        if self._loading:
            return "loading"
        return self._engine.state

    @property
    def last_autosave(self) -> int:
        return self._last_autosave

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    async def start_new(self) -> bool:
        """Generate a fresh story and start it. Existing saves are kept."""
        if self._loading:
            raise GenerationInProgress("A story is already being generated")

        self.error = None
        self._engine.reset()
        self._loading = True
        try:
            document = await self._generator_factory().generate()
            self._engine.start(document)
        except GenerationError as e:
            logger.warning("could not start a new story: %s", e)
            self._engine.reset()
            self.error = GENERATION_FAILED_MESSAGE
            return False
        finally:
            self._loading = False
        return True

    def load(self) -> bool:
        """Resume the saved story. False when there is none or it was corrupt."""
        if self._loading:
            raise GenerationInProgress("A story is being generated")
        try:
            saved = self._persistence.load()
        except CorruptSave:
            self.error = CORRUPT_SAVE_MESSAGE
            return False
        if saved is None:
            return False
        self.error = None
        self._engine.restore(saved)
        return True

    def save(self) -> bool:
        """Write the current story to the save slot. Only while active."""
        if self._engine.state != "active":
            return False
        ok = self._persistence.save(self._engine.snapshot())
        if ok:
            logger.info("saved at %s", self._engine.current_scene_id)
        return ok

    def autosave(self) -> int | None:
        """Timer entry point. Returns the new autosave timestamp in ms."""
        if self._engine.state != "active":
            return None
        if not self.save():
            return None
        self._last_autosave = max(int(time.time() * 1000), self._last_autosave + 1)
        logger.info("autosaved at %s", self._engine.current_scene_id)
        return self._last_autosave

    def choose(self, index: int) -> ChoiceOutcome:
        return self._engine.choose(index)

    def reset(self) -> None:
        """Drop the story and delete the save slot."""
        if self._loading:
            raise GenerationInProgress("A story is being generated")
        self._engine.reset()
        self.error = None
        self._persistence.clear()
        logger.info("session reset")

    # ------------------------------------------------------------------
    # Presentation snapshot
    # ------------------------------------------------------------------

    def save_exists(self) -> bool:
        return self._persistence.exists()

    def view(self) -> SessionView:
        engine = self._engine
        document = engine.document
        return SessionView(
            status=self.status,
            title=document.title if document else None,
            scene=engine.current_scene if engine.state == "active" else None,
            ending_text=engine.ending_text,
            relationship_scores=engine.ledger.scores(),
            characters=list(document.characters) if document else [],
            background_image=engine.background_image,
            last_autosave=self._last_autosave,
            save_exists=self.save_exists(),
            error=self.error,
        )
