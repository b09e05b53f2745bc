"""Roblox identity provider over httpx.

Endpoints:
- POST {users}/v1/usernames/users            exact username lookup
- GET  {users}/v1/users/search               keyword search
- GET  {users}/v1/users/{id}                 public description
- GET  {web}/users/profile/profileheader-json?userId={id}
- GET  {web}/users/{id}/profile              rendered profile page
- GET  {friends}/v1/users/{id}               authenticated description

Each call opens a short-lived client with a bounded timeout and is never
retried here. The .ROBLOSECURITY cookie is injected at construction and is
never logged.
"""

from typing import Any

import httpx
import structlog

from profilelink.adapters.identity.base import IdentityProvider
from profilelink.services.verification_types import ExternalAccount

logger = structlog.get_logger()

# Roblox only accepts these page sizes on the search endpoint
_SEARCH_PAGE_SIZES = (10, 25, 50, 100)

# The profile page is served differently to non-browser user agents
_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def _to_account(item: dict[str, Any]) -> ExternalAccount:
    return ExternalAccount(
        external_id=str(item["id"]),
        username=item["name"],
        display_name=item.get("displayName"),
    )


def _text_field(payload: Any, key: str) -> str | None:
    """Return payload[key] when the body is an object and the field is text."""
    if not isinstance(payload, dict):
        return None
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _search_page_size(limit: int) -> int:
    for size in _SEARCH_PAGE_SIZES:
        if limit <= size:
            return size
    return _SEARCH_PAGE_SIZES[-1]


class RobloxIdentityProvider(IdentityProvider):
    """IdentityProvider for Roblox.

    Args:
        users_api_base: Base URL of the users API.
        web_base: Base URL of the website.
        friends_api_base: Base URL of the friends API.
        timeout: Per-call timeout in seconds.
        session_cookie: Optional .ROBLOSECURITY value.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        users_api_base: str = "https://users.roblox.com",
        web_base: str = "https://www.roblox.com",
        friends_api_base: str = "https://friends.roblox.com",
        timeout: float = 8.0,
        session_cookie: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._users_api = users_api_base.rstrip("/")
        self._web = web_base.rstrip("/")
        self._friends_api = friends_api_base.rstrip("/")
        self._timeout = timeout
        self._session_cookie = session_cookie or None
        self._transport = transport

    @property
    def has_session(self) -> bool:
        """True when a session cookie was supplied."""
        return self._session_cookie is not None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _session_headers(self) -> dict[str, str]:
        if self._session_cookie is None:
            return {}
        return {"Cookie": f".ROBLOSECURITY={self._session_cookie}"}

    async def _get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        async with self._client() as client:
            resp = await client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()

    async def lookup_by_names(self, names: list[str]) -> list[ExternalAccount]:
        """Resolve usernames exactly, excluding banned accounts.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status.
        """
        wanted = [name for name in names if name]
        if not wanted:
            return []

        async with self._client() as client:
            resp = await client.post(
                f"{self._users_api}/v1/usernames/users",
                json={"usernames": wanted, "excludeBannedUsers": True},
            )
            resp.raise_for_status()
            payload = resp.json()

        accounts = [_to_account(item) for item in payload.get("data", [])]
        logger.debug("roblox_lookup_by_names", requested=len(wanted), found=len(accounts))
        return accounts

    async def search(self, keyword: str, limit: int) -> list[ExternalAccount]:
        """Search the user directory by keyword.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status.
        """
        if not keyword:
            return []

        payload = await self._get_json(
            f"{self._users_api}/v1/users/search",
            params={"keyword": keyword, "limit": _search_page_size(limit)},
        )
        accounts = [_to_account(item) for item in payload.get("data", [])][:limit]
        logger.debug("roblox_search", found=len(accounts))
        return accounts

    async def fetch_description(self, external_id: str) -> str | None:
        """Raises httpx.HTTPError on failure. Non-text descriptions read as None."""
        payload = await self._get_json(f"{self._users_api}/v1/users/{external_id}")
        return _text_field(payload, "description")

    async def fetch_profile_header(self, external_id: str) -> str | None:
        """Raises httpx.HTTPError on failure."""
        payload = await self._get_json(
            f"{self._web}/users/profile/profileheader-json",
            params={"userId": external_id},
        )
        return _text_field(payload, "Description")

    async def fetch_profile_page(self, external_id: str) -> str | None:
        """Fetch the profile page HTML, with the session cookie when configured.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status.
        """
        headers = {
            "User-Agent": _BROWSER_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml",
            "Accept-Language": "en-US,en;q=0.9",
            **self._session_headers(),
        }
        async with self._client() as client:
            resp = await client.get(
                f"{self._web}/users/{external_id}/profile", headers=headers
            )
            resp.raise_for_status()
            return resp.text

    async def fetch_authenticated_profile(self, external_id: str) -> str | None:
        """Fetch the description through the friends API.

        Returns:
            The description, or None when no session cookie is configured.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status.
        """
        if self._session_cookie is None:
            return None
        payload = await self._get_json(
            f"{self._friends_api}/v1/users/{external_id}",
            headers={
                "User-Agent": _BROWSER_USER_AGENT,
                "Accept": "application/json",
                **self._session_headers(),
            },
        )
        return _text_field(payload, "description")
