"""Identity provider contract and Firebase Auth REST adapter."""
import logging
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from core.observable import Unsubscribe, ValueStream
from schemas.identity import Identity
from shared.api_errors import INTERNAL_ERROR, parse_identity_error

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], None]


class IdentityProviderError(Exception):
    """
    Raised by identity provider operations.

    `code` is a provider error code such as "auth/email-already-in-use" or
    "auth/network-request-failed".
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class IdentityProvider(Protocol):
    """Hosted authentication service."""

    async def create_identity(self, email: str, password: str) -> Identity:
        """Create an email/password identity and sign it in."""
        ...

    async def authenticate(self, email: str, password: str) -> Identity:
        """Sign in with email and password."""
        ...

    async def sign_out(self) -> None:
        """Sign the current identity out."""
        ...

    async def create_anonymous_identity(self) -> Identity:
        """Create and sign in an anonymous identity."""
        ...

    async def update_identity_profile(
        self,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> Identity:
        """Update display fields of the signed-in identity."""
        ...

    def on_identity_changed(self, callback: IdentityListener) -> Unsubscribe:
        """Subscribe to identity changes; the current identity is replayed immediately."""
        ...


class FirebaseIdentityProvider:
    """
    Identity provider backed by the Firebase Identity Toolkit REST API.

    Tokens are held in memory only. Every sign-in, sign-up and sign-out publishes
    the new identity (or None) to subscribers in call order.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
    ) -> None:
        self._http_client = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._id_token: str | None = None
        self._refresh_token: str | None = None
        self._identity_stream: ValueStream[Identity | None] = ValueStream(None)

    @property
    def current_identity(self) -> Identity | None:
        """Get the signed-in identity, None when signed out."""
        return self._identity_stream.value

    @property
    def id_token(self) -> str | None:
        """Get the ID token of the signed-in identity, None when signed out."""
        return self._id_token

    def on_identity_changed(self, callback: IdentityListener) -> Unsubscribe:
        """Subscribe to identity changes; the current identity is replayed immediately."""
        return self._identity_stream.subscribe(callback)

    async def create_identity(self, email: str, password: str) -> Identity:
        """Create an email/password identity and sign it in."""
        body = await self._post(
            "accounts:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._signed_in(body)

    async def authenticate(self, email: str, password: str) -> Identity:
        """Sign in with email and password."""
        body = await self._post(
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._signed_in(body)

    async def create_anonymous_identity(self) -> Identity:
        """Create and sign in an anonymous identity."""
        body = await self._post("accounts:signUp", {"returnSecureToken": True})
        return self._signed_in(body, is_anonymous=True)

    async def sign_out(self) -> None:
        """Drop local tokens and publish the signed-out state."""
        self._id_token = None
        self._refresh_token = None
        if self._identity_stream.value is not None:
            logger.info("identity_signed_out")
            self._identity_stream.publish(None)

    async def update_identity_profile(
        self,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> Identity:
        """
        Update display fields of the signed-in identity.

        Does not publish an identity change; profile edits are not sign-in events.

        Raises:
            IdentityProviderError: If no identity is signed in or the update fails.
        """
        current = self._identity_stream.value
        if current is None or self._id_token is None:
            raise IdentityProviderError("auth/no-current-user", "No identity is signed in")

        payload: dict[str, Any] = {"idToken": self._id_token, "returnSecureToken": True}
        if display_name is not None:
            payload["displayName"] = display_name
        if photo_url is not None:
            payload["photoUrl"] = photo_url
        body = await self._post("accounts:update", payload)
        self._store_tokens(body)

        updated = Identity(
            uid=current.uid,
            email=body.get("email", current.email),
            display_name=body.get("displayName", current.display_name),
            photo_url=body.get("photoUrl", current.photo_url),
            is_anonymous=current.is_anonymous,
        )
        self._identity_stream.replace(updated)
        return updated

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to an Identity Toolkit endpoint, translating failures."""
        try:
            response = await self._http_client.post(
                f"{self._base_url}/{endpoint}",
                params={"key": self._api_key},
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            parsed = parse_identity_error(e)
            logger.warning(
                "identity_request_failed endpoint=%s code=%s", endpoint, parsed.code,
            )
            raise IdentityProviderError(parsed.code, parsed.message) from e
        try:
            body = response.json()
        except ValueError as e:
            logger.warning("identity_response_malformed endpoint=%s", endpoint)
            raise IdentityProviderError(
                INTERNAL_ERROR, f"Malformed response from {endpoint}",
            ) from e
        if not isinstance(body, dict):
            raise IdentityProviderError(INTERNAL_ERROR, f"Malformed response from {endpoint}")
        return body

    def _store_tokens(self, body: dict[str, Any]) -> None:
        if body.get("idToken"):
            self._id_token = body["idToken"]
        if body.get("refreshToken"):
            self._refresh_token = body["refreshToken"]

    def _signed_in(self, body: dict[str, Any], is_anonymous: bool = False) -> Identity:
        """Record tokens from a sign-in response and publish the identity."""
        if not body.get("localId"):
            raise IdentityProviderError(
                INTERNAL_ERROR, "Sign-in response did not include a user id",
            )
        self._store_tokens(body)
        identity = Identity(
            uid=body["localId"],
            email=body.get("email") or None,
            display_name=body.get("displayName") or None,
            photo_url=body.get("profilePicture") or body.get("photoUrl") or None,
            is_anonymous=is_anonymous,
        )
        logger.info("identity_signed_in uid=%s anonymous=%s", identity.uid, is_anonymous)
        self._identity_stream.publish(identity)
        return identity
