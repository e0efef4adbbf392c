"""Static placeholder entries served when the search index is unavailable."""
from schemas.word import Word

PLACEHOLDER_CATEGORY = "Placeholder"

PLACEHOLDER_DEFINITION = (
    "This is a placeholder definition for a word that exists in our system but "
    "detailed information is not available."
)

PLACEHOLDER_WORDS: tuple[Word, ...] = (
    Word(
        id="placeholder1",
        word="Rizz",
        definition=(
            "Charm or the ability to attract a romantic partner through style, "
            "charisma, and appeal."
        ),
        example="He has so much rizz, he got her number in five minutes.",
        categories=["Social Media", "Dating"],
        is_trending=True,
    ),
    Word(
        id="placeholder2",
        word="Slay",
        definition="To do something exceptionally well or impressively.",
        example="You really slayed that presentation!",
        categories=["Social Media"],
        is_trending=True,
    ),
    Word(
        id="placeholder3",
        word="Bussin",
        definition="Extremely good, especially referring to food.",
        example="This food is bussin!",
        categories=["Food"],
        is_trending=True,
    ),
)
