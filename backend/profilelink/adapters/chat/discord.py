"""Discord REST v10 client over httpx.

Only the handful of endpoints the verification engine needs:
- GET    /guilds/{guild}/members/{user}
- PUT    /guilds/{guild}/members/{user}/roles/{role}
- DELETE /guilds/{guild}/members/{user}/roles/{role}
- PATCH  /guilds/{guild}/members/{user}          {"nick": ...}
- POST   /users/@me/channels                     {"recipient_id": ...}
- POST   /channels/{channel}/messages            {"content": ...}
- GET    /guilds/{guild}

Authenticates with the bot token (never logged). Failures raise
httpx.HTTPError; callers decide whether they matter.
"""

from typing import Any

import httpx
import structlog

from profilelink.adapters.chat.base import ChatPlatformClient, Member

logger = structlog.get_logger()

# Discord rejects nicknames longer than this
_MAX_NICK_LENGTH = 32

# Discord rejects message content longer than this
_MAX_MESSAGE_LENGTH = 2000

_AUDIT_REASON = "Account verification"


class DiscordRestClient(ChatPlatformClient):
    """ChatPlatformClient for Discord's REST API.

    Args:
        bot_token: Discord bot token.
        api_base: REST API base URL (v10).
        timeout: Per-call timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        bot_token: str,
        api_base: str = "https://discord.com/api/v10",
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        audit_reason: bool = False,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bot {self._bot_token}"}
        if audit_reason:
            headers["X-Audit-Log-Reason"] = _AUDIT_REASON
        async with httpx.AsyncClient(
            base_url=self._api_base,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            resp = await client.request(method, path, json=json, headers=headers)
        resp.raise_for_status()
        return resp

    async def fetch_member(self, server_id: str, member_id: str) -> Member | None:
        """Fetch a guild member.

        Returns:
            The member, or None if Discord reports Unknown Member (404).

        Raises:
            httpx.HTTPError: On any other failure.
        """
        try:
            resp = await self._request("GET", f"/guilds/{server_id}/members/{member_id}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise

        payload = resp.json()
        user = payload.get("user") or {}
        display_name = (
            payload.get("nick") or user.get("global_name") or user.get("username") or ""
        )
        return Member(
            member_id=member_id,
            server_id=server_id,
            display_name=display_name,
            role_ids=frozenset(str(role_id) for role_id in payload.get("roles", [])),
        )

    async def add_role(self, server_id: str, member_id: str, role_id: str) -> None:
        """Raises httpx.HTTPError on failure."""
        await self._request(
            "PUT",
            f"/guilds/{server_id}/members/{member_id}/roles/{role_id}",
            audit_reason=True,
        )
        logger.info("discord_role_added", server_id=server_id, role_id=role_id)

    async def remove_role(self, server_id: str, member_id: str, role_id: str) -> None:
        """Raises httpx.HTTPError on failure."""
        await self._request(
            "DELETE",
            f"/guilds/{server_id}/members/{member_id}/roles/{role_id}",
            audit_reason=True,
        )
        logger.info("discord_role_removed", server_id=server_id, role_id=role_id)

    async def set_display_name(
        self, server_id: str, member_id: str, display_name: str
    ) -> None:
        """Set the member's nickname, truncated to Discord's limit.

        Raises:
            httpx.HTTPError: On failure (e.g. 403 for the server owner).
        """
        await self._request(
            "PATCH",
            f"/guilds/{server_id}/members/{member_id}",
            json={"nick": display_name[:_MAX_NICK_LENGTH]},
            audit_reason=True,
        )

    async def send_direct_message(self, user_id: str, content: str) -> None:
        """Open (or reuse) the DM channel with a user and post to it.

        Raises:
            httpx.HTTPError: On failure (e.g. 403 when the user blocks DMs).
        """
        resp = await self._request(
            "POST", "/users/@me/channels", json={"recipient_id": user_id}
        )
        channel_id = resp.json()["id"]
        await self.send_channel_message(str(channel_id), content)

    async def send_channel_message(self, channel_id: str, content: str) -> None:
        """Raises httpx.HTTPError on failure."""
        await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            json={"content": content[:_MAX_MESSAGE_LENGTH]},
        )

    async def fetch_server_name(self, server_id: str) -> str | None:
        """Raises httpx.HTTPError on failure."""
        resp = await self._request("GET", f"/guilds/{server_id}")
        name = resp.json().get("name")
        return str(name) if name else None
