"""Tests for the Firebase Identity Toolkit adapter."""
import json

import httpx
import pytest
import respx
from httpx import Response

from clients.identity_provider import FirebaseIdentityProvider, IdentityProviderError
from schemas.identity import Identity

BASE_URL = "https://identity.test/v1"


@pytest.fixture
def mock_api() -> respx.MockRouter:
    """Context manager for mocking Identity Toolkit responses."""
    with respx.mock(base_url=BASE_URL) as respx_mock:
        yield respx_mock


@pytest.fixture
async def provider() -> FirebaseIdentityProvider:
    async with httpx.AsyncClient() as client:
        yield FirebaseIdentityProvider(client, api_key="test-key", base_url=BASE_URL)


def sign_in_body(uid: str = "uid-1", email: str = "ana@example.com") -> dict:
    return {
        "localId": uid,
        "email": email,
        "idToken": "id-token",
        "refreshToken": "refresh-token",
    }


class TestFirebaseIdentityProvider:
    """Tests for FirebaseIdentityProvider."""

    async def test__create_identity__publishes_identity(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        route = mock_api.post("/accounts:signUp").mock(
            return_value=Response(200, json=sign_in_body()),
        )
        events: list[Identity | None] = []
        provider.on_identity_changed(events.append)

        identity = await provider.create_identity("ana@example.com", "secret1")

        assert identity == Identity(uid="uid-1", email="ana@example.com")
        assert events == [None, identity]
        assert provider.current_identity == identity
        assert provider.id_token == "id-token"
        request = route.calls[0].request
        assert request.url.params["key"] == "test-key"
        assert json.loads(request.content) == {
            "email": "ana@example.com",
            "password": "secret1",
            "returnSecureToken": True,
        }

    async def test__authenticate__error_mapped_to_code(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signInWithPassword").mock(
            return_value=Response(400, json={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}),
        )
        events: list[Identity | None] = []
        provider.on_identity_changed(events.append)

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.authenticate("ana@example.com", "wrong")

        assert exc_info.value.code == "auth/invalid-credential"
        assert events == [None]

    async def test__network_failure__network_request_failed(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signInWithPassword").mock(
            side_effect=httpx.ConnectError("offline"),
        )
        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.authenticate("ana@example.com", "secret1")
        assert exc_info.value.code == "auth/network-request-failed"

    async def test__non_json_success_body__internal_error(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signInWithPassword").mock(
            return_value=Response(200, text="<html>gateway</html>"),
        )
        events: list[Identity | None] = []
        provider.on_identity_changed(events.append)

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.authenticate("ana@example.com", "secret1")

        assert exc_info.value.code == "auth/internal-error"
        assert events == [None]

    async def test__sign_in_without_local_id__internal_error(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signUp").mock(
            return_value=Response(200, json={"idToken": "t"}),
        )

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.create_anonymous_identity()

        assert exc_info.value.code == "auth/internal-error"
        assert provider.current_identity is None
        assert provider.id_token is None

    async def test__create_anonymous_identity__is_anonymous(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        route = mock_api.post("/accounts:signUp").mock(
            return_value=Response(200, json={"localId": "anon-1", "idToken": "t"}),
        )

        identity = await provider.create_anonymous_identity()

        assert identity.is_anonymous
        assert identity.email is None
        assert json.loads(route.calls[0].request.content) == {"returnSecureToken": True}

    async def test__sign_out__publishes_none_once(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signUp").mock(return_value=Response(200, json=sign_in_body()))
        await provider.create_identity("ana@example.com", "secret1")
        events: list[Identity | None] = []
        provider.on_identity_changed(events.append)

        await provider.sign_out()
        await provider.sign_out()

        assert events[1:] == [None]
        assert provider.id_token is None

    async def test__update_identity_profile__does_not_publish(
        self, mock_api: respx.MockRouter, provider: FirebaseIdentityProvider,
    ) -> None:
        mock_api.post("/accounts:signUp").mock(return_value=Response(200, json=sign_in_body()))
        route = mock_api.post("/accounts:update").mock(
            return_value=Response(200, json={"localId": "uid-1", "displayName": "Ana"}),
        )
        await provider.create_identity("ana@example.com", "secret1")
        events: list[Identity | None] = []
        provider.on_identity_changed(events.append)

        updated = await provider.update_identity_profile(display_name="Ana")

        assert updated.display_name == "Ana"
        assert provider.current_identity == updated
        assert len(events) == 1
        payload = json.loads(route.calls[0].request.content)
        assert payload["idToken"] == "id-token"
        assert payload["displayName"] == "Ana"
        assert "photoUrl" not in payload

    async def test__update_identity_profile__requires_sign_in(
        self, provider: FirebaseIdentityProvider,
    ) -> None:
        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.update_identity_profile(display_name="Ana")
        assert exc_info.value.code == "auth/no-current-user"
