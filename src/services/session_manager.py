"""
Session and profile reconciliation.

The SessionManager turns identity-provider events plus profile-store reads into a
single "current user" value. It is built once per process (see
core.app_context) and handed to every consumer.

State transitions:
    UNINITIALIZED -> RESOLVING on the first identity event with an identity
    RESOLVING -> READY when the profile is read or created
    RESOLVING -> DEGRADED on a transient store error (local profile + retries)
    DEGRADED -> READY when a background retry succeeds
    any -> SIGNED_OUT on a None identity or a non-transient store error

Identity events are handled in emission order. Each event bumps a generation
counter; profile reads are tagged with the generation they were issued for and
dropped if a newer event arrived while they were in flight. Any new event also
cancels a pending degraded-mode retry.
"""
import asyncio
import logging
from collections.abc import Coroutine
from enum import StrEnum
from typing import Any

from clients.blob_store import BlobStore, ProgressCallback
from clients.identity_provider import IdentityProvider, IdentityProviderError
from core.observable import Unsubscribe, ValueStream
from db.profile_store import ProfileStore, ProfileStoreError, ProfileStoreUnavailableError
from schemas.identity import Identity
from schemas.profile import RECENT_WORDS_LIMIT, Profile
from services import favorites_service, photo_service, profile_service
from services.exceptions import AuthErrorKind, SessionError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 3.0


class SessionState(StrEnum):
    """Reconciliation state of the current session."""

    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    READY = "ready"
    DEGRADED = "degraded"
    SIGNED_OUT = "signed_out"


# Provider error codes shared by every operation
_COMMON_ERRORS: dict[str, tuple[AuthErrorKind, str]] = {
    "auth/invalid-email": (AuthErrorKind.INVALID_INPUT, "Invalid email format."),
    "auth/missing-password": (AuthErrorKind.INVALID_INPUT, "Please enter a password."),
    "auth/network-request-failed": (
        AuthErrorKind.NETWORK_UNAVAILABLE,
        "Network error. Please check your internet connection.",
    ),
    "auth/too-many-requests": (
        AuthErrorKind.RATE_LIMITED,
        "Too many failed login attempts. Please try again later or reset your password.",
    ),
    "auth/admin-restricted-operation": (
        AuthErrorKind.OPERATION_DISABLED,
        "This sign-in method is not enabled. Please contact support.",
    ),
}

REGISTER_ERRORS: dict[str, tuple[AuthErrorKind, str]] = {
    **_COMMON_ERRORS,
    "auth/email-already-in-use": (
        AuthErrorKind.DUPLICATE_IDENTITY,
        "This email is already in use. Try signing in instead.",
    ),
    "auth/operation-not-allowed": (
        AuthErrorKind.OPERATION_DISABLED,
        "Email/password registration is not enabled. Please contact support.",
    ),
    "auth/weak-password": (
        AuthErrorKind.WEAK_CREDENTIAL,
        "Password is too weak. Please use a stronger password.",
    ),
}

LOGIN_ERRORS: dict[str, tuple[AuthErrorKind, str]] = {
    **_COMMON_ERRORS,
    "auth/user-disabled": (AuthErrorKind.ACCOUNT_DISABLED, "This account has been disabled."),
    "auth/user-not-found": (
        AuthErrorKind.INVALID_CREDENTIAL,
        "Invalid email or password. Please try again.",
    ),
    "auth/wrong-password": (
        AuthErrorKind.INVALID_CREDENTIAL,
        "Invalid email or password. Please try again.",
    ),
    "auth/invalid-credential": (
        AuthErrorKind.INVALID_CREDENTIAL,
        "Invalid credentials. Please try again.",
    ),
    "auth/operation-not-allowed": (
        AuthErrorKind.OPERATION_DISABLED,
        "Email/password login is not enabled. Please contact support.",
    ),
}

GUEST_ERRORS: dict[str, tuple[AuthErrorKind, str]] = {
    **_COMMON_ERRORS,
    "auth/operation-not-allowed": (
        AuthErrorKind.OPERATION_DISABLED,
        "Guest sign-in is not enabled. Please contact support.",
    ),
}


def map_identity_error(
    error: IdentityProviderError,
    table: dict[str, tuple[AuthErrorKind, str]],
    fallback_message: str,
) -> SessionError:
    """Translate a provider error into the closed session error taxonomy."""
    kind, message = table.get(error.code, (AuthErrorKind.UNKNOWN, fallback_message))
    return SessionError(kind, message)


def build_fallback_profile(identity: Identity) -> Profile:
    """Synthesize a local profile from identity fields only (degraded mode)."""
    return profile_service.build_profile(identity)


class SessionManager:
    """
    Single source of truth for the signed-in user.

    Consumers read `current_user` or subscribe via `observe_current_user()`.
    Profile mutations made through this object are mirrored into the current
    value immediately and then written to the store.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        profile_store: ProfileStore,
        blob_store: BlobStore | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        recent_words_limit: int = RECENT_WORDS_LIMIT,
    ) -> None:
        self._identity_provider = identity_provider
        self._store = profile_store
        self._blob_store = blob_store
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._recent_words_limit = recent_words_limit

        self._current_user: ValueStream[Profile | None] = ValueStream(None)
        self._state = SessionState.UNINITIALIZED
        self._identity: Identity | None = None
        self._generation = 0
        self._retry_task: asyncio.Task | None = None
        # Strong references so in-flight work is not garbage collected
        self._background_tasks: set[asyncio.Task] = set()
        self._unsubscribe: Unsubscribe | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to identity events. The provider replays the current identity."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._identity_provider.on_identity_changed(
            self._on_identity_changed,
        )

    async def close(self) -> None:
        """Unsubscribe and cancel any in-flight resolution or retry work."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._background_tasks):
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._retry_task = None

    async def wait_idle(self) -> None:
        """Wait until no resolution, retry or best-effort write is pending."""
        while True:
            pending = [task for task in self._background_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -- observation ---------------------------------------------------------

    def observe_current_user(self) -> ValueStream[Profile | None]:
        """Get the push stream of current-user values (replays the current value)."""
        return self._current_user

    @property
    def current_user(self) -> Profile | None:
        """Get the current user's profile, None when signed out."""
        return self._current_user.value

    @property
    def state(self) -> SessionState:
        """Get the reconciliation state."""
        return self._state

    @property
    def identity(self) -> Identity | None:
        """Get the identity the current state was derived from."""
        return self._identity

    # -- identity events -----------------------------------------------------

    def _on_identity_changed(self, identity: Identity | None) -> None:
        """Handle an identity event from the provider (runs synchronously)."""
        self._generation += 1
        self._cancel_retry()
        previous = self._identity
        self._identity = identity
        logger.info(
            "identity_changed uid=%s generation=%s",
            identity.uid if identity else None,
            self._generation,
        )

        if identity is None:
            self._sign_out_locally()
            return

        if previous is None or previous.uid != identity.uid:
            self._set_state(SessionState.RESOLVING)
        else:
            # Same identity re-emitted: keep showing the current profile while re-reading
            self._set_state(SessionState.RESOLVING, publish=False)
        self._spawn(self._resolve(identity, self._generation))

    async def _resolve(self, identity: Identity, generation: int) -> None:
        """Read or create the profile for an identity."""
        try:
            profile = await profile_service.ensure_profile(self._store, identity)
        except ProfileStoreUnavailableError as e:
            if self._is_stale(generation):
                return
            logger.warning("Profile store unavailable for %s, using fallback: %s", identity.uid, e)
            self._enter_degraded(identity, generation)
            return
        except ProfileStoreError as e:
            if self._is_stale(generation):
                return
            logger.error("Error getting profile for %s: %s", identity.uid, e)
            self._sign_out_locally()
            return

        if self._is_stale(generation):
            logger.debug("profile_result_discarded uid=%s generation=%s", identity.uid, generation)
            return
        self._publish(SessionState.READY, profile)

    def _enter_degraded(self, identity: Identity, generation: int) -> None:
        """Keep the UI usable with local data and schedule background retries."""
        current = self._current_user.value
        if current is not None and current.id == identity.uid:
            profile = current
        else:
            profile = build_fallback_profile(identity)
        self._publish(SessionState.DEGRADED, profile)
        if self._retry_attempts > 0:
            self._retry_task = self._spawn(self._retry_resolve(identity, generation))

    async def _retry_resolve(self, identity: Identity, generation: int) -> None:
        """Retry the profile read with linear-growth backoff until it succeeds."""
        for attempt in range(1, self._retry_attempts + 1):
            await asyncio.sleep(attempt * self._retry_backoff_seconds)
            if self._is_stale(generation):
                return
            try:
                profile = await profile_service.ensure_profile(self._store, identity)
            except ProfileStoreUnavailableError as e:
                logger.warning(
                    "profile_retry_failed uid=%s attempt=%s error=%s", identity.uid, attempt, e,
                )
                continue
            except ProfileStoreError as e:
                if self._is_stale(generation):
                    return
                logger.error("Error getting profile for %s on retry: %s", identity.uid, e)
                self._sign_out_locally()
                return
            if self._is_stale(generation):
                return
            logger.info("profile_retry_succeeded uid=%s attempt=%s", identity.uid, attempt)
            self._publish(SessionState.READY, profile)
            return
        logger.warning(
            "profile_retry_exhausted uid=%s attempts=%s", identity.uid, self._retry_attempts,
        )

    # -- session operations --------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> Profile:
        """
        Create an account and its profile document.

        The profile is written before returning, so callers can rely on it.

        Raises:
            SessionError: With a kind from the closed taxonomy.
        """
        logger.info("register_attempt email=%s", email)
        try:
            identity = await self._identity_provider.create_identity(email, password)
            if display_name:
                identity = await self._identity_provider.update_identity_profile(
                    display_name=display_name,
                )
        except IdentityProviderError as e:
            logger.error("Error in register: %s", e)
            raise map_identity_error(
                e, REGISTER_ERRORS, "Failed to create account. Please try again.",
            ) from e

        profile = profile_service.build_profile(identity, display_name=display_name)
        if not profile.username:
            profile = profile.model_copy(update={"username": email.split("@")[0]})
        try:
            await profile_service.create_profile(self._store, profile)
        except ProfileStoreUnavailableError as e:
            logger.error("Error creating profile for %s: %s", identity.uid, e)
            raise SessionError(
                AuthErrorKind.NETWORK_UNAVAILABLE,
                "Network error. Please check your internet connection.",
            ) from e
        except ProfileStoreError as e:
            logger.error("Error creating profile for %s: %s", identity.uid, e)
            raise SessionError(
                AuthErrorKind.UNKNOWN, "Failed to create account. Please try again.",
            ) from e

        if self._identity is not None and self._identity.uid == identity.uid:
            self._publish(SessionState.READY, profile)
        logger.info("register_succeeded uid=%s", identity.uid)
        return profile

    async def login(self, email: str, password: str) -> None:
        """
        Sign in. The profile arrives through the identity event path.

        Raises:
            SessionError: With a kind from the closed taxonomy.
        """
        logger.info("login_attempt email=%s", email)
        try:
            identity = await self._identity_provider.authenticate(email, password)
        except IdentityProviderError as e:
            logger.error("Error in login: %s", e)
            raise map_identity_error(
                e, LOGIN_ERRORS, "Failed to sign in. Please try again.",
            ) from e
        self._spawn(profile_service.touch_last_login(self._store, identity.uid))

    async def logout(self) -> None:
        """
        Sign out. The local user is cleared even when the provider call fails.

        Raises:
            SessionError: After clearing local state, if the provider sign-out failed.
        """
        profile = self._current_user.value
        if profile is not None:
            self._spawn(profile_service.touch_last_active(self._store, profile.id))
        try:
            await self._identity_provider.sign_out()
        except IdentityProviderError as e:
            logger.error("Error in logout: %s", e)
            if e.code == "auth/network-request-failed":
                raise SessionError(
                    AuthErrorKind.NETWORK_UNAVAILABLE,
                    "Network error. Your data will be cleared locally, but you may "
                    "still be logged in on the server.",
                ) from e
            raise SessionError(
                AuthErrorKind.UNKNOWN, "Failed to sign out. Please try again.",
            ) from e
        finally:
            self._generation += 1
            self._cancel_retry()
            self._identity = None
            self._sign_out_locally()
        logger.info("logout_succeeded")

    async def login_as_guest(self) -> None:
        """
        Sign in anonymously and create the guest profile.

        Raises:
            SessionError: With a kind from the closed taxonomy.
        """
        try:
            identity = await self._identity_provider.create_anonymous_identity()
        except IdentityProviderError as e:
            logger.error("Error in login_as_guest: %s", e)
            raise map_identity_error(
                e, GUEST_ERRORS, "Failed to sign in as guest. Please try again.",
            ) from e

        profile = profile_service.build_guest_profile(identity)
        try:
            await profile_service.create_profile(self._store, profile)
        except ProfileStoreError as e:
            # The identity exists; the event path creates or degrades the profile
            logger.warning("Error creating guest profile for %s: %s", identity.uid, e)
            return
        if self._identity is not None and self._identity.uid == identity.uid:
            self._publish(SessionState.READY, profile)

    # -- profile operations (optimistic local mirroring) ---------------------

    async def add_favorite(self, word_id: str) -> bool:
        """Favorite a word for the current user."""
        profile = self._current_user.value
        if profile is None:
            return False
        self._mirror(favorites_service.with_favorite_added(profile, word_id))
        return await favorites_service.add_favorite(self._store, profile.id, word_id)

    async def remove_favorite(self, word_id: str) -> bool:
        """Remove a word from the current user's favorites."""
        profile = self._current_user.value
        if profile is None:
            return False
        self._mirror(favorites_service.with_favorite_removed(profile, word_id))
        return await favorites_service.remove_favorite(self._store, profile.id, word_id)

    async def record_recent_view(self, word_id: str) -> bool:
        """Record that the current user viewed a word."""
        profile = self._current_user.value
        if profile is None:
            return False
        self._mirror(
            favorites_service.with_recent_view(profile, word_id, self._recent_words_limit),
        )
        return await favorites_service.record_recent_view(
            self._store, profile.id, word_id, self._recent_words_limit,
        )

    async def update_profile(
        self,
        display_name: str | None = None,
        photo_url: str | None = None,
        bio: str | None = None,
        username: str | None = None,
    ) -> bool:
        """
        Update editable profile fields for the current user.

        Display name and photo are also pushed to the identity provider
        (best-effort).
        """
        profile = self._current_user.value
        if profile is None:
            return False
        fields = {
            name: value
            for name, value in {
                "display_name": display_name,
                "photo_url": photo_url,
                "bio": bio,
                "username": username,
            }.items()
            if value is not None
        }
        if not fields:
            return True
        self._mirror(profile.model_copy(update=fields))
        saved = await profile_service.update_profile_fields(self._store, profile.id, **fields)
        if display_name is not None or photo_url is not None:
            await self._sync_identity_profile(display_name=display_name, photo_url=photo_url)
        return saved

    async def update_settings(self, **settings: Any) -> bool:
        """
        Update preferences for the current user.

        Raises:
            ValueError: If an unknown setting or invalid value is passed.
        """
        profile = self._current_user.value
        if profile is None:
            return False
        unknown = set(settings) - set(type(profile.settings).model_fields)
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")
        new_settings = profile.settings.model_validate(
            {**profile.settings.model_dump(), **settings},
        )
        self._mirror(profile.model_copy(update={"settings": new_settings}))
        return await profile_service.update_settings(self._store, profile.id, **settings)

    async def update_profile_photo(
        self,
        data: bytes,
        content_type: str = "image/jpeg",
        on_progress: ProgressCallback | None = None,
    ) -> str | None:
        """Upload a new photo for the current user and return its URL."""
        profile = self._current_user.value
        if profile is None or self._blob_store is None:
            return None
        photo_url = await photo_service.upload_profile_photo(
            self._blob_store, self._store, profile.id, data, content_type, on_progress,
        )
        if photo_url is None:
            return None
        current = self._current_user.value
        if current is not None and current.id == profile.id:
            self._mirror(current.model_copy(update={"photo_url": photo_url}))
        await self._sync_identity_profile(photo_url=photo_url)
        return photo_url

    # -- internals -----------------------------------------------------------

    async def _sync_identity_profile(
        self,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> None:
        """Push display fields to the identity provider, logging failures."""
        try:
            await self._identity_provider.update_identity_profile(
                display_name=display_name, photo_url=photo_url,
            )
        except IdentityProviderError as e:
            logger.warning("Failed to update identity profile: %s", e)

    def _mirror(self, profile: Profile) -> None:
        """Publish a locally-modified profile without changing the state."""
        current = self._current_user.value
        if current is None or current.id != profile.id:
            return
        self._current_user.publish(profile)

    def _publish(self, state: SessionState, profile: Profile) -> None:
        self._set_state(state, publish=False)
        self._current_user.publish(profile)

    def _set_state(self, state: SessionState, publish: bool = True) -> None:
        """Record a state change; RESOLVING with publish clears the current user."""
        if state != self._state:
            logger.debug("session_state %s -> %s", self._state, state)
        self._state = state
        if publish and state == SessionState.RESOLVING and self._current_user.value is not None:
            self._current_user.publish(None)

    def _sign_out_locally(self) -> None:
        self._state = SessionState.SIGNED_OUT
        if self._current_user.value is not None:
            self._current_user.publish(None)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _cancel_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a coroutine in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background session task failed: %s", error, exc_info=error)
