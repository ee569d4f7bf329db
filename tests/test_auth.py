"""
Session resolution against the auth service
"""
import httpx
import pytest

from social_service.auth import AuthServiceClient, SessionContext, SessionResolver, require_auth
from social_service.errors import ServiceUnavailableError, UnauthenticatedError


def _client(handler) -> AuthServiceClient:
    return AuthServiceClient(base_url="http://auth.test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_valid_token_resolves_store_user(repos, alice):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"id": alice.id, "username": "alice", "is_active": True})

    context = await SessionResolver(repos.users, _client(handler)).resolve("tok")

    assert seen == {"path": "/api/v1/auth/me", "auth": "Bearer tok"}
    assert context.authenticated
    assert require_auth(context).id == alice.id


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(401, json={"detail": "expired"}),
    httpx.Response(200, json={"id": "unknown-user"}),
    httpx.Response(200, json={"username": "no-id"}),
])
async def test_rejected_tokens_are_anonymous(repos, response):
    context = await SessionResolver(repos.users, _client(lambda request: response)).resolve("tok")

    assert not context.authenticated
    with pytest.raises(UnauthenticatedError):
        require_auth(context)


@pytest.mark.asyncio
async def test_inactive_user_is_anonymous(repos, alice):
    def handler(request):
        return httpx.Response(200, json={"id": alice.id, "is_active": False})

    context = await SessionResolver(repos.users, _client(handler)).resolve("tok")

    assert context == SessionContext.anonymous()


@pytest.mark.asyncio
async def test_missing_token_skips_auth_service(repos):
    def handler(request):
        raise AssertionError("auth service should not be called")

    context = await SessionResolver(repos.users, _client(handler)).resolve(None)

    assert not context.authenticated


@pytest.mark.asyncio
async def test_unreachable_auth_service_is_unavailable(repos):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceUnavailableError) as exc:
        await SessionResolver(repos.users, _client(handler)).resolve("tok")

    assert exc.value.status_code == 503
