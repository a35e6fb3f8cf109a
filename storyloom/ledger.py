"""Relationship ledger — per-character integer scores.

Keys are fixed at initialization: one per non-player character, spelled
exactly as the generator declared it. Updates only ever touch existing
keys; an effect naming anyone else (a typo in generated text, the player)
is ignored. Scores are unbounded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from storyloom.models import Character, RelationshipEffect, is_player_name

logger = logging.getLogger(__name__)


class RelationshipLedger:
    def __init__(self, scores: Mapping[str, int] | None = None) -> None:
        self._scores: dict[str, int] = dict(scores or {})

    @classmethod
    def initialize(
        cls, characters: Iterable[Character], player_name: str = "you"
    ) -> RelationshipLedger:
        """Build a ledger with every non-player character at 0.

        The player is recognised case-insensitively; all other names are
        kept verbatim as case-sensitive keys.
        """
        player = player_name.lower()
        scores: dict[str, int] = {}
        for c in characters:
            if c.name.lower() == player or is_player_name(c.name):
                continue
            scores[c.name] = 0
        return cls(scores)

    @classmethod
    def from_scores(cls, scores: Mapping[str, int]) -> RelationshipLedger:
        """Restore a ledger from saved scores, keys untouched."""
        return cls(scores)

    def apply(self, effects: Iterable[RelationshipEffect] | None) -> list[RelationshipEffect]:
        """Add each effect's change in order. Returns the effects that landed."""
        applied: list[RelationshipEffect] = []
        for effect in effects or ():
            if effect.character not in self._scores:
                logger.debug("ledger: ignoring effect for unknown character %r", effect.character)
                continue
            self._scores[effect.character] += effect.change
            applied.append(effect)
        return applied

    def copy(self) -> RelationshipLedger:
        return RelationshipLedger(self._scores)

    def scores(self) -> dict[str, int]:
        return dict(self._scores)

    def __getitem__(self, name: str) -> int:
        return self._scores[name]

    def __contains__(self, name: object) -> bool:
        return name in self._scores

    def __iter__(self) -> Iterator[str]:
        return iter(self._scores)

    def __len__(self) -> int:
        return len(self._scores)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelationshipLedger):
            return self._scores == other._scores
        return NotImplemented

    def __repr__(self) -> str:
        return f"RelationshipLedger({self._scores!r})"
