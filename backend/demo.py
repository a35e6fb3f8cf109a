"""Bundled demo story for development without a model.

The "demo" provider format serves DEMO_STORY through CannedLLM, and
`main.py --demo` writes a save positioned on its first scene.
"""

import json
from pathlib import Path

from storyloom.engine import TraversalEngine
from storyloom.generator import decode_story, ensure_player_character
from storyloom.llm import CannedLLM
from storyloom.persistence import PersistenceManager
from storyloom.storage import FileStore

_BG = "https://picsum.photos/seed/{}/1920/1080"

DEMO_STORY = {
    "title": "Signal from the Drowned City",
    "premise": "A distress call repeats from a district that sank forty years ago.",
    "setting": "Neo-Lisbon, a rain-soaked coastal megacity of tidal walls and neon.",
    "characters": [
        {
            "name": "Kael",
            "description": "A salvage diver with a cybernetic eye and a debt he won't name.",
            "portraitUrl": "https://picsum.photos/seed/kael/200/200",
        },
        {
            "name": "Anya",
            "description": "A city archivist who knows which records were erased.",
            "portraitUrl": "https://picsum.photos/seed/anya/200/200",
        },
    ],
    "scenes": {
        "scene_1": {
            "id": "scene_1",
            "title": "The Signal",
            "narration": "Rain hammers the tidal wall as your receiver crackles to life. "
            "The same three words, again: 'We are still here.'",
            "dialogue": [
                {"character": "Kael", "line": "That frequency's been dead since before I was born."},
                {"character": "Anya", "line": "Then someone went to a lot of trouble to wake it up."},
                {"character": "You", "line": "Or someone never stopped."},
            ],
            "visuals": {
                "backgroundImage": _BG.format("tidalwall"),
                "characterIllustration": "Kael in a dripping wetsuit, cybernetic eye glowing "
                "blue, staring at a battered receiver under neon rain.",
            },
            "choices": [
                {
                    "text": "Dive with Kael tonight.",
                    "consequence": "Kael grins. Anya looks away.",
                    "nextSceneId": "scene_2",
                    "relationshipEffects": [
                        {"character": "Kael", "change": 1},
                        {"character": "Anya", "change": -1},
                    ],
                },
                {
                    "text": "Search the archive with Anya first.",
                    "consequence": "Anya nods, relieved.",
                    "nextSceneId": "scene_3",
                    "relationshipEffects": [{"character": "Anya", "change": 1}],
                },
            ],
        },
        "scene_2": {
            "id": "scene_2",
            "title": "Below the Wall",
            "narration": "The drowned streets glow with bioluminescent algae. A door stands open "
            "that should have rusted shut decades ago.",
            "dialogue": [
                {"character": "Kael", "line": "Stay close. The current changes down here."},
            ],
            "visuals": {
                "backgroundImage": _BG.format("drowned"),
                "characterIllustration": "Kael's helmet lamp cutting through green water, "
                "expression tense.",
            },
            "choices": [
                {
                    "text": "Go through the door.",
                    "consequence": "The signal grows louder.",
                    "nextSceneId": "scene_4",
                },
                {
                    "text": "Surface and call Anya.",
                    "consequence": "Kael mutters, but follows.",
                    "nextSceneId": "scene_3",
                    "relationshipEffects": [
                        {"character": "Kael", "change": -1},
                        {"character": "Anya", "change": 1},
                    ],
                },
            ],
        },
        "scene_3": {
            "id": "scene_3",
            "title": "Erased Records",
            "narration": "The archive smells of ozone and dust. One file has been deleted "
            "forty times, and restored forty-one.",
            "dialogue": [
                {"character": "Anya", "line": "Someone keeps bringing this back. Someone inside."},
            ],
            "visuals": {
                "backgroundImage": "",
                "characterIllustration": "Anya lit by a flickering terminal, jaw set.",
            },
            "choices": [
                {
                    "text": "Trust the file and go down together.",
                    "consequence": "For once, everyone agrees.",
                    "nextSceneId": "scene_4",
                    "relationshipEffects": [
                        {"character": "Kael", "change": 1},
                        {"character": "Anya", "change": 1},
                    ],
                },
                {
                    "text": "Hand the file to the city authority.",
                    "consequence": "The signal stops the same night.",
                    "nextSceneId": None,
                },
            ],
        },
        "scene_4": {
            "id": "scene_4",
            "title": "Still Here",
            "narration": "Behind the door, a sealed habitat hums. Faces press to the glass. "
            "They were never lost. They were hidden.",
            "dialogue": [
                {"character": "Anya", "line": "Forty years."},
                {"character": "Kael", "line": "Then let's not make it forty-one."},
            ],
            "visuals": {
                "backgroundImage": _BG.format("habitat"),
                "characterIllustration": "Kael and Anya reflected in habitat glass, awed.",
            },
            "choices": [
                {
                    "text": "Open the habitat.",
                    "consequence": "The city will have to answer for this.",
                    "nextSceneId": None,
                },
            ],
        },
    },
}


def demo_llm() -> CannedLLM:
    """LLM stand-in that always answers with the demo story."""
    return CannedLLM(json.dumps(DEMO_STORY))


def create_demo_save(data_dir: Path) -> None:
    """Write a save positioned at the start of the demo story."""
    document = ensure_player_character(decode_story(json.dumps(DEMO_STORY)))
    engine = TraversalEngine()
    engine.start(document)
    persistence = PersistenceManager(FileStore(data_dir / "saves"))
    persistence.save(engine.snapshot())
    print(f"Created demo save for {document.title!r} in {data_dir / 'saves'}.")
