"""Save-game persistence and the autosave loop.

One save slot lives under a fixed key in the blob store. The value is the
JSON form of a SessionState:

    {
      "version": 1,
      "story": {...},                 ← the whole StoryDocument
      "currentSceneId": "scene_3",
      "relationshipScores": {"Kael": 2},
      "backgroundImage": "https://..."
    }

A value that does not decode is deleted on sight and reported once as
CorruptSave; the next load sees no save at all.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from storyloom.models import SessionState
from storyloom.storage import BlobStore

if TYPE_CHECKING:
    from storyloom.session import GameSession

logger = logging.getLogger(__name__)

SAVE_KEY = "storyloom-save"
AUTOSAVE_INTERVAL = 30.0  # seconds


class CorruptSave(Exception):
    """Raised when the stored save cannot be decoded. The save is removed."""


class PersistenceManager:
    def __init__(self, store: BlobStore, key: str = SAVE_KEY) -> None:
        self._store = store
        self._key = key

    def save(self, state: SessionState) -> bool:
        """Replace the stored save. Returns False if the write failed."""
        payload = state.model_dump_json(by_alias=True, indent=2)
        try:
            self._store.write(self._key, payload)
        except OSError as e:
            logger.error("save failed: %s", e)
            return False
        logger.debug("saved %s at %s (%d bytes)", self._key, state.current_scene_id, len(payload))
        return True

    def load(self) -> SessionState | None:
        """Return the stored session, or None when there is no save."""
        try:
            raw = self._store.read(self._key)
            if raw is None:
                return None
            return SessionState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("discarding corrupt save %s: %d errors", self._key, e.error_count())
            self._store.delete(self._key)
            raise CorruptSave("Saved game is corrupted") from e
        except UnicodeDecodeError as e:
            logger.warning("discarding undecodable save %s", self._key)
            self._store.delete(self._key)
            raise CorruptSave("Saved game is corrupted") from e

    def exists(self) -> bool:
        return self._store.exists(self._key)

    def clear(self) -> None:
        if self._store.delete(self._key):
            logger.info("cleared save %s", self._key)


class AutosaveScheduler:
    """Calls session.autosave() every `interval` seconds on the event loop.

    Holds the live session rather than a snapshot, so each tick sees the
    current state. Ticks with no active story do nothing.
    """

    def __init__(self, session: GameSession, interval: float = AUTOSAVE_INTERVAL) -> None:
        self._session = session
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="autosave")
        logger.debug("autosave every %.1fs", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def tick(self) -> int | None:
        """Run one autosave. Returns the autosave timestamp, or None."""
        try:
            return self._session.autosave()
        except Exception:
            logger.exception("autosave tick failed")
            return None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()
