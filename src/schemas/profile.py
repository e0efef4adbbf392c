"""Pydantic schemas for user profile documents."""
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from schemas.validators import Timestamp, utc_now

# Maximum number of entries kept in Profile.recent_word_ids
RECENT_WORDS_LIMIT = 10


class QuizDifficulty(StrEnum):
    """Quiz difficulty preference."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DocumentModel(BaseModel):
    """Base for models stored as camelCase documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Badge(DocumentModel):
    """Badge earned by a user."""

    id: str
    name: str
    description: str = ""
    icon_ref: str = ""
    date_earned: Timestamp = Field(default_factory=utc_now)


class ProfileStats(DocumentModel):
    """Activity counters for a profile."""

    words_viewed: NonNegativeInt = 0
    words_favorited: NonNegativeInt = 0
    quizzes_taken: NonNegativeInt = 0
    quizzes_passed: NonNegativeInt = 0
    total_score: NonNegativeInt = 0
    streak_days: NonNegativeInt = 0
    last_active: Timestamp = Field(default_factory=utc_now)


class ProfileSettings(DocumentModel):
    """User preferences."""

    notifications_enabled: bool = True
    dark_mode_enabled: bool = False
    email_notifications: bool = True
    quiz_difficulty: QuizDifficulty = QuizDifficulty.MEDIUM
    language: str = "en"


class Profile(DocumentModel):
    """
    Application-owned user document, keyed by the identity uid.

    `id` is the document key and is not part of the stored document body.
    Instances are treated as immutable; use `model_copy(update=...)` to derive
    new versions (the session manager publishes whole values).
    """

    id: str = Field(exclude=True)
    email: str = ""
    display_name: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    bio: str = ""
    username: str = ""
    created_at: Timestamp = Field(default_factory=utc_now)
    last_login_at: Timestamp = Field(default_factory=utc_now)
    favorite_word_ids: list[str] = []
    recent_word_ids: list[str] = []
    badges: list[Badge] = []
    stats: ProfileStats = Field(default_factory=ProfileStats)
    settings: ProfileSettings = Field(default_factory=ProfileSettings)

    @model_validator(mode="before")
    @classmethod
    def fill_missing_fields(cls, data: Any) -> Any:
        """Replace nulls with defaults and derive a username from the email."""
        if not isinstance(data, dict):
            return data
        data = {key: value for key, value in data.items() if value is not None}
        if not data.get("username"):
            email = data.get("email") or ""
            data["username"] = email.split("@")[0]
        return data

    @field_validator("recent_word_ids")
    @classmethod
    def dedupe_recent_word_ids(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each id, capped at RECENT_WORDS_LIMIT."""
        return list(dict.fromkeys(v))[:RECENT_WORDS_LIMIT]

    @classmethod
    def from_document(cls, profile_id: str, document: dict[str, Any]) -> "Profile":
        """Build a Profile from a stored document body."""
        return cls.model_validate({**document, "id": profile_id})

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored document body (camelCase keys, epoch-ms timestamps)."""
        return self.model_dump(by_alias=True, mode="json")

    def is_favorite(self, word_id: str) -> bool:
        """Check whether a word is in the favorites set."""
        return word_id in self.favorite_word_ids
