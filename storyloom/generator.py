"""Story generator — asks the LLM for a whole story graph and validates it.

Flow:
  1. Render the story prompt (embedding the schema for backends that cannot
     enforce one).
  2. Call the LLM once (stage "story").
  3. Decode the reply: optional markdown fence stripped, then JSON.
  4. Validate into a StoryDocument; reject empty scene maps and a missing
     scene_1.
  5. Make sure a player character ("You") is in the cast.

Every failure on the way surfaces as GenerationError; nothing partial is
ever returned.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from storyloom.llm import LLM, LLMError
from storyloom.models import (
    ENTRY_SCENE_ID,
    PLAYER_NAME,
    Character,
    StoryDocument,
)
from storyloom.prompts import PromptError, build_story_prompt

logger = logging.getLogger(__name__)

DEFAULT_GENRE = "a mix of sci-fi and mystery"

PLAYER_DESCRIPTION = "The protagonist of this story."
PLAYER_PORTRAIT = "https://picsum.photos/seed/protagonist/200/200"


class GenerationError(Exception):
    """Raised when a story cannot be produced: backend failure or bad output."""


class MissingEntryScene(GenerationError):
    """Raised when a generated story has no scene_1 to start from."""


# ---------------------------------------------------------------------------
# Structured-output schema (OpenAPI subset, as accepted by Gemini)
# ---------------------------------------------------------------------------

def _string(description: str = "") -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "STRING"}
    if description:
        schema["description"] = description
    return schema


def _object(properties: dict[str, Any], required: list[str], **extra: Any) -> dict[str, Any]:
    return {"type": "OBJECT", "properties": properties, "required": required, **extra}


def _array(items: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {"type": "ARRAY", "items": items, **extra}


_SCENE_SCHEMA = _object(
    {
        "id": _string(),
        "title": _string(),
        "narration": _string(),
        "dialogue": _array(
            _object({"character": _string(), "line": _string()}, ["character", "line"])
        ),
        "visuals": _object(
            {
                "backgroundImage": _string("A placeholder image URL from picsum.photos."),
                "characterIllustration": _string(
                    "A detailed, descriptive prompt for an image generation model."
                ),
            },
            ["backgroundImage", "characterIllustration"],
        ),
        "choices": _array(
            _object(
                {
                    "text": _string(),
                    "consequence": _string(),
                    "nextSceneId": {"type": "STRING", "nullable": True},
                    "relationshipEffects": _array(
                        _object(
                            {"character": _string(), "change": {"type": "INTEGER"}},
                            ["character", "change"],
                        ),
                        nullable=True,
                    ),
                },
                ["text", "consequence", "nextSceneId"],
            )
        ),
    },
    ["id", "title", "narration", "dialogue", "visuals", "choices"],
)

STORY_SCHEMA: dict[str, Any] = _object(
    {
        "title": _string(),
        "premise": _string(),
        "setting": _string(),
        "characters": _array(
            _object(
                {
                    "name": _string(),
                    "description": _string(),
                    "portraitUrl": _string(
                        "A seeded picsum.photos URL for the character portrait."
                    ),
                },
                ["name", "description", "portraitUrl"],
            )
        ),
        "scenes": _object(
            {ENTRY_SCENE_ID: _SCENE_SCHEMA},
            [ENTRY_SCENE_ID],
            description="A dictionary of scenes, where the key is the scene ID.",
            additionalProperties=_SCENE_SCHEMA,
        ),
    },
    ["title", "premise", "setting", "characters", "scenes"],
)


# ---------------------------------------------------------------------------
# Decoding and validation
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```$", re.DOTALL)


def decode_story(text: str) -> StoryDocument:
    """Parse and validate generator output into a StoryDocument."""
    text = text.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Generator returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError(
            f"Story must be a JSON object, got {type(data).__name__}"
        )

    try:
        document = StoryDocument.model_validate(data)
    except ValidationError as e:
        raise GenerationError(
            f"Story failed validation ({e.error_count()} errors)"
        ) from e

    if not document.scenes:
        raise GenerationError("Story has no scenes")
    if document.entry_scene is None:
        raise MissingEntryScene(f"Story has no entry scene {ENTRY_SCENE_ID!r}")
    return document


def ensure_player_character(document: StoryDocument) -> StoryDocument:
    """Return the document with a player character in the cast.

    The document is returned unchanged when a "you" character exists.
    """
    if document.player_character() is not None:
        return document
    player = Character(
        name=PLAYER_NAME,
        description=PLAYER_DESCRIPTION,
        portrait_url=PLAYER_PORTRAIT,
    )
    return document.model_copy(update={"characters": [*document.characters, player]})


# ---------------------------------------------------------------------------
# StoryGenerator
# ---------------------------------------------------------------------------

class StoryGenerator:
    """Produces validated story documents from an LLM.

    Args:
        llm:             Any callable matching the LLM protocol.
        genre:           Genre line substituted into the prompt.
        min_characters:  Lower bound on the cast size asked for.
        max_characters:  Upper bound on the cast size asked for.
        prompt_template: Handlebars template; empty selects the default.
        embed_schema:    Spell the schema out in the prompt text, for
                         backends that cannot enforce structured output.
    """

    def __init__(
        self,
        llm: LLM,
        *,
        genre: str = DEFAULT_GENRE,
        min_characters: int = 2,
        max_characters: int = 4,
        prompt_template: str = "",
        embed_schema: bool = True,
    ) -> None:
        self._llm = llm
        self._genre = genre
        self._min_characters = min_characters
        self._max_characters = max_characters
        self._template = prompt_template
        self._embed_schema = embed_schema

    def build_prompt(self) -> str:
        return build_story_prompt(
            genre=self._genre,
            min_characters=self._min_characters,
            max_characters=self._max_characters,
            schema_json=json.dumps(STORY_SCHEMA, indent=2) if self._embed_schema else "",
            template=self._template,
        )

    async def generate(self) -> StoryDocument:
        try:
            prompt = self.build_prompt()
        except PromptError as e:
            raise GenerationError(str(e)) from e

        try:
            text = await self._llm("story", prompt, STORY_SCHEMA)
        except LLMError as e:
            logger.warning("story generation failed: %s", e)
            raise GenerationError(str(e)) from e

        try:
            document = decode_story(text)
        except GenerationError as e:
            logger.warning("story generation returned unusable output: %s", e)
            raise

        document = ensure_player_character(document)
        logger.info(
            "generated story %r: %d characters, %d scenes",
            document.title, len(document.characters), len(document.scenes),
        )
        return document
