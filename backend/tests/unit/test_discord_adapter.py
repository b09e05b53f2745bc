"""Tests for DiscordRestClient using httpx.MockTransport."""

import json

import httpx
import pytest

from profilelink.adapters.chat.base import Member
from profilelink.adapters.chat.discord import DiscordRestClient

_API = "https://discord.test/api/v10"
_GUILD = "900"
_USER = "100"


class _Recorder:
    """Handler that records requests and replies by (method, path)."""

    def __init__(self, responses: dict[tuple[str, str], httpx.Response]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path.removeprefix("/api/v10"))
        return self.responses.get(key, httpx.Response(204))


def _client(handler) -> DiscordRestClient:
    return DiscordRestClient(
        bot_token="bot-token",
        api_base=_API,
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestFetchMember:
    """Member lookup."""

    async def test_member_fields(self) -> None:
        """Nick wins over global name and username; roles become a set."""
        handler = _Recorder(
            {
                ("GET", f"/guilds/{_GUILD}/members/{_USER}"): httpx.Response(
                    200,
                    json={
                        "nick": "Nick",
                        "roles": ["500", "501"],
                        "user": {"username": "user", "global_name": "Global"},
                    },
                )
            }
        )

        member = await _client(handler).fetch_member(_GUILD, _USER)

        assert member == Member(
            member_id=_USER,
            server_id=_GUILD,
            display_name="Nick",
            role_ids=frozenset({"500", "501"}),
        )
        assert handler.requests[0].headers["Authorization"] == "Bot bot-token"

    async def test_member_without_nick_uses_global_name(self) -> None:
        handler = _Recorder(
            {
                ("GET", f"/guilds/{_GUILD}/members/{_USER}"): httpx.Response(
                    200,
                    json={"roles": [], "user": {"username": "user", "global_name": "Global"}},
                )
            }
        )

        member = await _client(handler).fetch_member(_GUILD, _USER)

        assert member is not None
        assert member.display_name == "Global"

    async def test_unknown_member_is_none(self) -> None:
        handler = _Recorder(
            {("GET", f"/guilds/{_GUILD}/members/{_USER}"): httpx.Response(404)}
        )

        assert await _client(handler).fetch_member(_GUILD, _USER) is None

    async def test_other_errors_raise(self) -> None:
        handler = _Recorder(
            {("GET", f"/guilds/{_GUILD}/members/{_USER}"): httpx.Response(500)}
        )

        with pytest.raises(httpx.HTTPStatusError):
            await _client(handler).fetch_member(_GUILD, _USER)

    def test_has_role(self) -> None:
        member = Member(_USER, _GUILD, "Nick", frozenset({"500"}))
        client = _client(_Recorder({}))

        assert client.has_role(member, "500")
        assert not client.has_role(member, "501")


class TestMutations:
    """Role changes, renames, and messages."""

    async def test_add_and_remove_role(self) -> None:
        handler = _Recorder({})
        client = _client(handler)

        await client.add_role(_GUILD, _USER, "500")
        await client.remove_role(_GUILD, _USER, "501")

        add, remove = handler.requests
        assert add.method == "PUT"
        assert add.url.path.endswith(f"/guilds/{_GUILD}/members/{_USER}/roles/500")
        assert add.headers["X-Audit-Log-Reason"] == "Account verification"
        assert remove.method == "DELETE"
        assert remove.url.path.endswith("/roles/501")

    async def test_role_change_forbidden_raises(self) -> None:
        handler = _Recorder(
            {
                ("PUT", f"/guilds/{_GUILD}/members/{_USER}/roles/500"): httpx.Response(
                    403, json={"message": "Missing Permissions"}
                )
            }
        )

        with pytest.raises(httpx.HTTPStatusError):
            await _client(handler).add_role(_GUILD, _USER, "500")

    async def test_set_display_name_truncates(self) -> None:
        handler = _Recorder({})

        await _client(handler).set_display_name(_GUILD, _USER, "x" * 40)

        request = handler.requests[0]
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"nick": "x" * 32}

    async def test_direct_message_opens_channel_then_posts(self) -> None:
        handler = _Recorder(
            {("POST", "/users/@me/channels"): httpx.Response(200, json={"id": "777"})}
        )

        await _client(handler).send_direct_message(_USER, "hello")

        open_channel, post = handler.requests
        assert json.loads(open_channel.content) == {"recipient_id": _USER}
        assert post.url.path.endswith("/channels/777/messages")
        assert json.loads(post.content) == {"content": "hello"}

    async def test_channel_message_truncated(self) -> None:
        handler = _Recorder({})

        await _client(handler).send_channel_message("700", "y" * 2500)

        assert len(json.loads(handler.requests[0].content)["content"]) == 2000

    async def test_fetch_server_name(self) -> None:
        handler = _Recorder(
            {("GET", f"/guilds/{_GUILD}"): httpx.Response(200, json={"name": "Test Server"})}
        )

        assert await _client(handler).fetch_server_name(_GUILD) == "Test Server"
