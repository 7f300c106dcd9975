"""
YAML Content Store: Infrastructure adapter for flashcard decks on disk.

A deck is either a top-level list of cards or a mapping with a `cards` list:

    category: async-programming
    difficulty: intermediate
    cards:
      - id: event-loop-phases
        question: Name the phases of the event loop.
        answer: timers, pending callbacks, poll, check, close callbacks
        tags: [event-loop]

Deck-level `category` and `difficulty` act as defaults for every card.
"""

import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore

from cadence.domain.constants import DEFAULT_CATEGORY
from cadence.domain.errors import ContentError, NotFound
from cadence.domain.models import DifficultyLevel, Flashcard
from cadence.domain.ports import ContentStore

logger = logging.getLogger(__name__)

# Interview-question seniority levels accepted as difficulty aliases
DIFFICULTY_ALIASES = {
    "junior": DifficultyLevel.BEGINNER,
    "mid": DifficultyLevel.INTERMEDIATE,
    "senior": DifficultyLevel.ADVANCED,
}


def parse_difficulty(value: Any) -> DifficultyLevel:
    text = str(value).strip().lower()
    if text in DIFFICULTY_ALIASES:
        return DIFFICULTY_ALIASES[text]
    try:
        return DifficultyLevel(text)
    except ValueError:
        raise ContentError(f"Unknown difficulty: {value!r}") from None


def parse_deck(text: str, source: str = "<string>") -> list[Flashcard]:
    """
    Parse deck YAML into flashcards.

    Raises:
        ContentError: On invalid YAML, malformed cards or duplicate ids.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ContentError(f"{source}: invalid YAML: {e}") from e

    defaults: dict[str, Any] = {}
    if data is None:
        return []
    if isinstance(data, dict):
        defaults = {k: data[k] for k in ("category", "difficulty") if k in data}
        data = data.get("cards", [])
    if not isinstance(data, list):
        raise ContentError(f"{source}: expected a list of cards")

    cards: list[Flashcard] = []
    seen: set[str] = set()
    for i, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ContentError(f"{source}: card #{i + 1} is not a mapping")
        missing = [k for k in ("id", "question", "answer") if not raw.get(k)]
        if missing:
            raise ContentError(f"{source}: card #{i + 1} is missing {', '.join(missing)}")

        card_id = str(raw["id"])
        if card_id in seen:
            raise ContentError(f"{source}: duplicate card id {card_id!r}")
        seen.add(card_id)

        tags = raw.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]

        cards.append(
            Flashcard(
                id=card_id,
                question=str(raw["question"]),
                answer=str(raw["answer"]),
                category=str(raw.get("category", defaults.get("category", DEFAULT_CATEGORY))),
                difficulty=parse_difficulty(
                    raw.get("difficulty", defaults.get("difficulty", "beginner"))
                ),
                tags=frozenset(str(t) for t in tags),
            )
        )
    return cards


class YamlContentStore(ContentStore):
    """
    Serves flashcards from one YAML deck file, or every *.yaml / *.yml file of
    a directory (sorted by name).
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cards: dict[str, Flashcard] = {}
        self._load()

    def _load(self) -> None:
        if self.path.is_dir():
            files = sorted(
                p for p in self.path.iterdir() if p.suffix in (".yaml", ".yml") and p.is_file()
            )
        elif self.path.is_file():
            files = [self.path]
        else:
            raise ContentError(f"Deck not found: {self.path}")

        for deck_file in files:
            for card in parse_deck(deck_file.read_text(encoding="utf-8"), str(deck_file)):
                if card.id in self._cards:
                    raise ContentError(f"{deck_file}: duplicate card id {card.id!r}")
                self._cards[card.id] = card
        logger.info(f"Loaded {len(self._cards)} flashcards from {len(files)} deck file(s)")

    def get_flashcard(self, card_id: str) -> Flashcard:
        try:
            return self._cards[card_id]
        except KeyError:
            raise NotFound(card_id) from None

    def list_flashcards(self) -> list[Flashcard]:
        return list(self._cards.values())
