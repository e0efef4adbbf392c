"""Tests for profile creation and field-level updates."""
import pytest

from db.profile_store import InMemoryProfileStore, ProfileStoreError
from schemas.identity import Identity
from schemas.profile import Profile, QuizDifficulty
from services import profile_service


@pytest.fixture
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


async def load(store: InMemoryProfileStore, profile_id: str) -> Profile:
    return Profile.from_document(profile_id, await store.get(profile_id))


class TestBuildProfile:
    """Tests for building fresh profiles."""

    def test__email_identity__username_from_email(self) -> None:
        profile = profile_service.build_profile(
            Identity(uid="u1", email="ana.b@example.com"), display_name="Ana",
        )
        assert profile.username == "ana.b"
        assert profile.display_name == "Ana"
        assert profile.favorite_word_ids == []
        assert profile.stats.words_viewed == 0

    def test__identity_without_email__empty_username(self) -> None:
        profile = profile_service.build_profile(Identity(uid="u1"))
        assert profile.username == ""
        assert profile.email == ""

    def test__anonymous_identity__guest_defaults(self) -> None:
        profile = profile_service.build_profile(Identity(uid="abcdef123", is_anonymous=True))
        assert profile.display_name == "Guest User"
        assert profile.username == "guest_abcdef"
        assert profile.settings.email_notifications is False


class TestEnsureProfile:
    """Tests for ensure_profile."""

    async def test__missing__creates_document(self, store: InMemoryProfileStore) -> None:
        profile = await profile_service.ensure_profile(
            store, Identity(uid="u1", email="ana@example.com"),
        )
        assert profile.username == "ana"
        assert (await load(store, "u1")).email == "ana@example.com"

    async def test__existing__returned_unchanged(self, store: InMemoryProfileStore) -> None:
        await store.set("u1", {"email": "ana@example.com", "bio": "hello"})
        profile = await profile_service.ensure_profile(
            store, Identity(uid="u1", email="ana@example.com"),
        )
        assert profile.bio == "hello"

    async def test__email_change__copied_to_profile(self, store: InMemoryProfileStore) -> None:
        await store.set("u1", {"email": "old@example.com"})
        profile = await profile_service.ensure_profile(
            store, Identity(uid="u1", email="new@example.com"),
        )
        assert profile.email == "new@example.com"
        assert (await store.get("u1"))["email"] == "new@example.com"

    async def test__malformed_document__raises_store_error(
        self, store: InMemoryProfileStore,
    ) -> None:
        await store.set("u1", {"stats": {"wordsViewed": "many"}})
        with pytest.raises(ProfileStoreError, match="Malformed"):
            await profile_service.ensure_profile(store, Identity(uid="u1"))


class TestFieldUpdates:
    """Tests for update_profile_fields, update_settings and update_stats."""

    async def test__update_profile_fields__writes_camel_keys(
        self, store: InMemoryProfileStore,
    ) -> None:
        await store.set("u1", {"email": "a@b.c"})

        assert await profile_service.update_profile_fields(
            store, "u1", display_name="Ana", photo_url="https://img", bio="hi",
        )

        document = await store.get("u1")
        assert document["displayName"] == "Ana"
        assert document["photoURL"] == "https://img"
        assert document["bio"] == "hi"
        assert isinstance(document["lastLoginAt"], int)

    async def test__update_profile_fields__unknown_field_rejected(
        self, store: InMemoryProfileStore,
    ) -> None:
        with pytest.raises(ValueError, match="Unknown profile fields"):
            await profile_service.update_profile_fields(store, "u1", email="x@y.z")

    async def test__update_profile_fields__missing_profile_returns_false(
        self, store: InMemoryProfileStore,
    ) -> None:
        assert not await profile_service.update_profile_fields(store, "nobody", bio="x")

    async def test__update_settings__only_touches_named_keys(
        self, store: InMemoryProfileStore,
    ) -> None:
        await profile_service.create_profile(store, Profile(id="u1", email="a@b.c"))

        assert await profile_service.update_settings(
            store, "u1", dark_mode_enabled=True, quiz_difficulty="hard",
        )

        settings = (await load(store, "u1")).settings
        assert settings.dark_mode_enabled is True
        assert settings.quiz_difficulty == QuizDifficulty.HARD
        assert settings.notifications_enabled is True
        assert settings.language == "en"

    async def test__update_settings__invalid_value_rejected(
        self, store: InMemoryProfileStore,
    ) -> None:
        with pytest.raises(ValueError):
            await profile_service.update_settings(store, "u1", quiz_difficulty="impossible")

    async def test__update_settings__unknown_key_rejected(
        self, store: InMemoryProfileStore,
    ) -> None:
        with pytest.raises(ValueError, match="Unknown settings"):
            await profile_service.update_settings(store, "u1", theme="neon")

    async def test__update_stats__sets_counters(self, store: InMemoryProfileStore) -> None:
        await profile_service.create_profile(store, Profile(id="u1"))
        assert await profile_service.update_stats(store, "u1", streak_days=4, total_score=90)
        stats = (await load(store, "u1")).stats
        assert stats.streak_days == 4
        assert stats.total_score == 90

    async def test__update_stats__negative_rejected(self, store: InMemoryProfileStore) -> None:
        with pytest.raises(ValueError, match="negative"):
            await profile_service.update_stats(store, "u1", streak_days=-1)

    async def test__add_badge__appends_badge(self, store: InMemoryProfileStore) -> None:
        await profile_service.create_profile(store, Profile(id="u1"))
        await profile_service.add_badge(store, "u1", "first-word", "First Word")
        badges = (await load(store, "u1")).badges
        assert [badge.id for badge in badges] == ["first-word"]
        assert badges[0].name == "First Word"


class TestGetProfile:
    """Tests for get_profile."""

    async def test__missing__returns_none(self, store: InMemoryProfileStore) -> None:
        assert await profile_service.get_profile(store, "nobody") is None

    async def test__existing__returned(self, store: InMemoryProfileStore) -> None:
        await store.set("u1", {"email": "a@b.c"})
        profile = await profile_service.get_profile(store, "u1")
        assert profile is not None
        assert profile.id == "u1"
