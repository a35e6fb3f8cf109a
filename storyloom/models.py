"""Core domain models.

The story document arrives from an untrusted generator, so every field is
validated on the way in. Attribute names are snake_case; the wire and save
formats use the camelCase aliases the generator is asked to produce.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

PLAYER_NAME = "You"
ENTRY_SCENE_ID = "scene_1"


def is_player_name(name: str) -> bool:
    """True when a character name denotes the player ("you", any case)."""
    return name.lower() == PLAYER_NAME.lower()


class _StoryModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Character(_StoryModel):
    """A member of the cast. Portraits are looked up by exact name."""

    name: str
    description: str
    portrait_url: str = Field(alias="portraitUrl")


class Dialogue(_StoryModel):
    character: str
    line: str


class Visuals(_StoryModel):
    background_image: str = Field(alias="backgroundImage")
    # Image-model prompt; carried through but never rendered.
    character_illustration: str = Field(alias="characterIllustration")


class RelationshipEffect(_StoryModel):
    character: str
    change: int


class Choice(_StoryModel):
    """An edge of the story graph. next_scene_id None marks an ending."""

    text: str
    consequence: str
    next_scene_id: str | None = Field(alias="nextSceneId")
    relationship_effects: list[RelationshipEffect] | None = Field(
        default=None, alias="relationshipEffects"
    )

    @property
    def is_terminal(self) -> bool:
        return self.next_scene_id is None


class Scene(_StoryModel):
    id: str
    title: str
    narration: str
    dialogue: list[Dialogue]
    visuals: Visuals
    choices: list[Choice]


class StoryDocument(_StoryModel):
    """The generated story graph: cast plus scenes keyed by id."""

    title: str
    premise: str
    setting: str
    characters: list[Character]
    scenes: dict[str, Scene]

    @property
    def entry_scene(self) -> Scene | None:
        return self.scenes.get(ENTRY_SCENE_ID)

    def scene(self, scene_id: str | None) -> Scene | None:
        """Return the scene for an id, or None when it does not exist."""
        if scene_id is None:
            return None
        return self.scenes.get(scene_id)

    def player_character(self) -> Character | None:
        for c in self.characters:
            if is_player_name(c.name):
                return c
        return None


SAVE_FORMAT_VERSION = 1


class SessionState(BaseModel):
    """Everything needed to resume a story: the persisted unit.

    Field aliases match the saved-game layout (story, currentSceneId,
    relationshipScores, backgroundImage). Saves written before the version
    tag existed validate as version 1.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = SAVE_FORMAT_VERSION
    document: StoryDocument = Field(alias="story")
    current_scene_id: str = Field(alias="currentSceneId")
    ledger: dict[str, int] = Field(alias="relationshipScores")
    background_image: str = Field(alias="backgroundImage")

    @model_validator(mode="after")
    def _check_position(self) -> SessionState:
        if not 1 <= self.version <= SAVE_FORMAT_VERSION:
            raise ValueError(f"unsupported save version {self.version}")
        if self.current_scene_id not in self.document.scenes:
            raise ValueError(f"current scene {self.current_scene_id!r} not in story")
        return self
