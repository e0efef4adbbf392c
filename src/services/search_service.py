"""
Word search with graceful fallback to placeholder entries.

The hosted index may be missing (not yet provisioned), misconfigured, or
unreachable. None of those reach the caller: search degrades to a
case-insensitive substring filter over the placeholder list, and lookups by id
always produce a Word unless placeholder synthesis is turned off.
"""
import logging
from collections.abc import Sequence

from clients.search_index import SearchIndex, SearchIndexError, SearchIndexNotFoundError
from schemas.word import Word
from services.placeholder_words import (
    PLACEHOLDER_CATEGORY,
    PLACEHOLDER_DEFINITION,
    PLACEHOLDER_WORDS,
)

logger = logging.getLogger(__name__)

DEFAULT_TRENDING_LIMIT = 10


def filter_placeholder_words(query: str, words: Sequence[Word]) -> list[Word]:
    """Return words whose text or definition contains the query, ignoring case."""
    normalized = query.lower().strip()
    return [
        word for word in words
        if normalized in word.word.lower() or normalized in word.definition.lower()
    ]


def placeholder_word_for(word_id: str) -> Word:
    """Synthesize a placeholder Word from an id slug ("no-cap" -> "No cap")."""
    text = word_id.replace("-", " ")
    return Word(
        id=word_id,
        word=text[:1].upper() + text[1:],
        definition=PLACEHOLDER_DEFINITION,
        categories=[PLACEHOLDER_CATEGORY],
    )


class WordSearchService:
    """Search, trending and lookup over the word index with placeholder fallback."""

    def __init__(
        self,
        index: SearchIndex | None,
        placeholder_words: Sequence[Word] = PLACEHOLDER_WORDS,
        default_limit: int = DEFAULT_TRENDING_LIMIT,
    ) -> None:
        self._index = index
        self._placeholder_words = tuple(placeholder_words)
        self._default_limit = default_limit

    def trending(self, limit: int | None = None) -> list[Word]:
        """Get the first `limit` placeholder entries (no ranking signal is wired up)."""
        if limit is None:
            limit = self._default_limit
        return list(self._placeholder_words[:max(limit, 0)])

    def by_category(self, category: str) -> list[Word]:
        """Get placeholder entries tagged with a category (exact match)."""
        return [word for word in self._placeholder_words if category in word.categories]

    async def search(self, query: str) -> list[Word]:
        """
        Search words, never raising.

        A blank query returns the trending list. Index failures of any kind fall
        back to filtering the placeholder list.
        """
        if not query or not query.strip():
            return self.trending(self._default_limit)

        if self._index is None:
            logger.debug("search_index_absent query=%r", query)
            return filter_placeholder_words(query, self._placeholder_words)

        try:
            hits = await self._index.search(query)
        except SearchIndexNotFoundError as e:
            logger.info("Using placeholder data since search index is missing: %s", e)
            return filter_placeholder_words(query, self._placeholder_words)
        except SearchIndexError as e:
            logger.warning("Search index error: %s", e)
            return filter_placeholder_words(query, self._placeholder_words)
        return [Word.from_search_hit(hit) for hit in hits]

    async def get_by_id(self, word_id: str, synthesize: bool = True) -> Word | None:
        """
        Look up a word by id, trying progressively looser sources.

        Order: exact placeholder id, index lookup by id or normalized word text,
        fuzzy containment against placeholder words, then (if `synthesize`) a
        placeholder built from the id itself.

        Returns:
            The word, or None only when nothing matched and `synthesize` is False.
        """
        for word in self._placeholder_words:
            if word.id == word_id:
                return word

        word = await self._lookup_in_index(word_id)
        if word is not None:
            return word

        lowered = word_id.lower()
        for candidate in self._placeholder_words:
            text = candidate.word.lower()
            if text == lowered or lowered in text or text in lowered:
                return candidate

        if not synthesize:
            logger.info("word_not_found word_id=%s", word_id)
            return None
        logger.debug("word_placeholder_synthesized word_id=%s", word_id)
        return placeholder_word_for(word_id)

    async def _lookup_in_index(self, word_id: str) -> Word | None:
        """Find a word in the index by objectID or normalized word text."""
        if self._index is None:
            return None
        normalized = word_id.lower().replace("-", " ").replace('"', "")
        filters = f'objectID:"{word_id}" OR word:"{normalized}"'
        try:
            hits = await self._index.search("", filters=filters)
        except SearchIndexError as e:
            logger.warning("Error fetching word %s from search index: %s", word_id, e)
            return None
        if not hits:
            return None
        return Word.from_search_hit(hits[0])
