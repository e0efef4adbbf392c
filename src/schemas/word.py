"""Pydantic schemas for slang dictionary entries."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from schemas.validators import Timestamp, utc_now


class Word(BaseModel):
    """A slang dictionary entry. Read-only from the client's perspective."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    word: str
    definition: str
    example: str | None = None
    pronunciation: str | None = None
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)
    created_by: str | None = None
    is_trending: bool = False
    categories: list[str] = []

    @classmethod
    def from_search_hit(cls, hit: "SearchHit") -> "Word":
        """Convert a search index hit to a Word."""
        return cls(
            id=hit.object_id,
            word=hit.word,
            definition=hit.definition,
            example=hit.example,
            categories=hit.categories or [],
            created_at=hit.created_at,
            updated_at=hit.updated_at,
        )


class SearchHit(BaseModel):
    """A single ranked hit returned by the search index."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    object_id: str = Field(alias="objectID")
    word: str
    definition: str
    example: str | None = None
    categories: list[str] | None = None
    created_at: Timestamp = Field(default_factory=utc_now, alias="createdAt")
    updated_at: Timestamp = Field(default_factory=utc_now, alias="updatedAt")

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "SearchHit":
        """Validate a raw hit dictionary from the index response."""
        return cls.model_validate(raw)
