import copy
import json
from pathlib import Path
from typing import Any

import pytest

from storyloom.models import StoryDocument
from storyloom.persistence import PersistenceManager
from storyloom.storage import FileStore

STORY: dict[str, Any] = {
    "title": "The Last Lighthouse",
    "premise": "A keeper vanishes on the night of the storm.",
    "setting": "A rocky island at the edge of charted space.",
    "characters": [
        {"name": "Kael", "description": "A drifter.", "portraitUrl": "https://picsum.photos/seed/kael/200/200"},
        {"name": "Anya", "description": "The keeper's sister.", "portraitUrl": "https://picsum.photos/seed/anya/200/200"},
    ],
    "scenes": {
        "scene_1": {
            "id": "scene_1",
            "title": "Landfall",
            "narration": "Waves break over the jetty.",
            "dialogue": [{"character": "Kael", "line": "We made it."}],
            "visuals": {"backgroundImage": "https://picsum.photos/seed/jetty/1920/1080", "characterIllustration": "Kael, soaked."},
            "choices": [
                {
                    "text": "Go",
                    "consequence": "Kael follows.",
                    "nextSceneId": "scene_2",
                    "relationshipEffects": [{"character": "Kael", "change": 1}],
                },
                {"text": "Turn back", "consequence": "The boat leaves.", "nextSceneId": None},
                {"text": "Follow the lights", "consequence": "There are no lights.", "nextSceneId": "scene_99"},
            ],
        },
        "scene_2": {
            "id": "scene_2",
            "title": "The Stairs",
            "narration": "The lamp room is dark.",
            "dialogue": [],
            "visuals": {"backgroundImage": "", "characterIllustration": "Anya in the dark."},
            "choices": [
                {"text": "Light the lamp", "consequence": "It flares.", "nextSceneId": None},
                {"text": "Climb down", "consequence": "Back to the jetty.", "nextSceneId": "scene_1"},
            ],
        },
    },
}


@pytest.fixture
def story_payload() -> dict[str, Any]:
    """A fresh copy of the minimal two-scene story, as the generator sends it."""
    return copy.deepcopy(STORY)


@pytest.fixture
def document(story_payload) -> StoryDocument:
    return StoryDocument.model_validate(story_payload)


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path / "saves")


@pytest.fixture
def persistence(store: FileStore) -> PersistenceManager:
    return PersistenceManager(store)


class StubLLM:
    """Replays queued responses in order; records every call."""

    def __init__(self, *responses: str | Exception) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str, dict | None]] = []

    async def __call__(self, stage: str, prompt: str, schema: dict | None = None) -> str:
        self.calls.append((stage, prompt, schema))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def stub_llm():
    """Factory: stub_llm(response, ...) -> StubLLM. Dicts are sent as JSON."""
    def make(*responses: Any) -> StubLLM:
        return StubLLM(*(json.dumps(r) if isinstance(r, dict) else r for r in responses))
    return make
