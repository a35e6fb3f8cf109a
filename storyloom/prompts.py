"""Handlebars prompt rendering for the story request."""

from collections.abc import Callable
from typing import Any

import pybars


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


DEFAULT_STORY_PROMPT = """\
You are a professional interactive narrative designer. Create a branching story game similar to Choices or Episode. The game should read like a visual novel: mostly text-based storytelling with short character dialogues, emotional decisions, and multiple paths depending on player choices.

Generate a fully structured game script that includes:
- A clear title, setting, and main premise.
- A short description of {{min_characters}}-{{max_characters}} main characters. For each character, provide a 'portraitUrl' using a unique, seeded picsum.photos URL (e.g., 'https://picsum.photos/seed/character_name/200/200').
- A starting scene written in second-person ("you") with immersive dialogue and descriptive narration.
- After each short scene, give 2-3 player choices. Each choice must have a 'text', 'consequence', and 'nextSceneId'.
- Some choices should include 'relationshipEffects', an array of objects specifying a character's name and how their relationship score changes (e.g., { "character": "Kael", "change": 1 } or { "character": "Anya", "change": -1 }). A positive change means improved relationship, negative means it worsens.
- Each branch should change relationships or story direction (romance, conflict, mystery, etc.).
- Include at least 3 major branching moments and 2 different possible endings that are direct consequences of the player's relationships.
- For each scene's visuals, provide a 'backgroundImage' URL from 'https://picsum.photos/1920/1080'.
- For each scene's 'visuals.characterIllustration', write a detailed, descriptive prompt suitable for an image generation model describing the main character featured in the scene: appearance, expression, clothing and mood.
- Ensure all scene IDs are unique, following the pattern 'scene_1', 'scene_2', etc.
- The starting scene must have the ID 'scene_1'.
- An ending is signified by a choice having a 'nextSceneId' of null.

The tone should be cinematic, emotional, and immersive. Ensure the story is coherent, has emotional stakes, and rewards player decisions with meaningful outcomes based on relationships.

The genre should be {{{genre}}}.
{{#if schema_json}}

Return only a JSON object matching this schema, no other text:
{{{schema_json}}}
{{/if}}
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_story_prompt(
    *,
    genre: str,
    min_characters: int = 2,
    max_characters: int = 4,
    schema_json: str = "",
    template: str = "",
) -> str:
    """Render the story request. An empty template selects the default."""
    context = {
        "genre": genre,
        "min_characters": min_characters,
        "max_characters": max_characters,
        "schema_json": schema_json,
    }
    return render_prompt(template or DEFAULT_STORY_PROMPT, context)
