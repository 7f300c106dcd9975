import pytest

from cadence.domain.errors import ContentError, NotFound
from cadence.domain.models import DifficultyLevel
from cadence.infrastructure.content import YamlContentStore, parse_deck


def test_load_deck_file(deck_file):
    store = YamlContentStore(deck_file)

    cards = store.list_flashcards()
    assert [c.id for c in cards] == ["a1", "a2", "b1", "c1"]

    a2 = store.get_flashcard("a2")
    assert a2.category == "async-programming"
    assert a2.difficulty is DifficultyLevel.BEGINNER
    assert a2.tags == frozenset({"event-loop"})

    assert store.get_flashcard("b1").difficulty is DifficultyLevel.INTERMEDIATE
    c1 = store.get_flashcard("c1")
    assert c1.difficulty is DifficultyLevel.ADVANCED
    assert c1.category == "cancellation"


def test_missing_card_raises_not_found(deck_file):
    with pytest.raises(NotFound):
        YamlContentStore(deck_file).get_flashcard("ghost")


def test_plain_list_deck_uses_defaults():
    cards = parse_deck("- id: x\n  question: q\n  answer: a\n  tags: solo\n")

    assert cards[0].category == "general"
    assert cards[0].difficulty is DifficultyLevel.BEGINNER
    assert cards[0].tags == frozenset({"solo"})


def test_empty_deck():
    assert parse_deck("") == []


@pytest.mark.parametrize(
    "text, message",
    [
        ("cards: [unclosed", "invalid YAML"),
        ("just a string", "expected a list"),
        ("- not-a-mapping", "not a mapping"),
        ("- id: x\n  question: q\n", "missing answer"),
        ("- {id: x, question: q, answer: a}\n- {id: x, question: q, answer: a}", "duplicate"),
        ("- {id: x, question: q, answer: a, difficulty: impossible}", "Unknown difficulty"),
    ],
)
def test_malformed_decks(text, message):
    with pytest.raises(ContentError, match=message):
        parse_deck(text)


def test_directory_of_decks(tmp_path):
    (tmp_path / "b.yaml").write_text("- {id: b, question: q, answer: a}", encoding="utf-8")
    (tmp_path / "a.yml").write_text("- {id: a, question: q, answer: a}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    store = YamlContentStore(tmp_path)

    assert [c.id for c in store.list_flashcards()] == ["a", "b"]


def test_duplicate_ids_across_files(tmp_path):
    for name in ("one.yaml", "two.yaml"):
        (tmp_path / name).write_text("- {id: same, question: q, answer: a}", encoding="utf-8")

    with pytest.raises(ContentError, match="duplicate"):
        YamlContentStore(tmp_path)


def test_missing_path(tmp_path):
    with pytest.raises(ContentError, match="Deck not found"):
        YamlContentStore(tmp_path / "nope.yaml")
