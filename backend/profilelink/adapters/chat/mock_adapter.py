"""Mock chat-platform client for testing.

MockChatClient records every mutation so completer and workflow tests can
assert on side effects without a Discord connection.
"""

from dataclasses import replace
from typing import Any

import httpx

from profilelink.adapters.chat.base import ChatPlatformClient, Member


class MockChatClient(ChatPlatformClient):
    """In-memory chat client with scriptable failures.

    Role changes update the stored member, so a later fetch_member sees them.

    Attributes:
        calls: Record of all method invocations for test assertions.
        failing: Method names that raise httpx.ConnectError when called.
        direct_messages: (user_id, content) pairs sent.
        channel_messages: (channel_id, content) pairs sent.
    """

    def __init__(self) -> None:
        self._members: dict[tuple[str, str], Member] = {}
        self._server_names: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self.failing: set[str] = set()
        self.direct_messages: list[tuple[str, str]] = []
        self.channel_messages: list[tuple[str, str]] = []

    def add_member(
        self,
        server_id: str,
        member_id: str,
        display_name: str,
        role_ids: set[str] | frozenset[str] = frozenset(),
    ) -> Member:
        """Register a member."""
        member = Member(
            member_id=member_id,
            server_id=server_id,
            display_name=display_name,
            role_ids=frozenset(role_ids),
        )
        self._members[(server_id, member_id)] = member
        return member

    def set_server_name(self, server_id: str, name: str) -> None:
        """Set the name fetch_server_name returns."""
        self._server_names[server_id] = name

    def member(self, server_id: str, member_id: str) -> Member | None:
        """Current stored state of a member."""
        return self._members.get((server_id, member_id))

    def _record(self, method: str, **arguments: Any) -> None:
        self.calls.append({"method": method, **arguments})
        if method in self.failing:
            raise httpx.ConnectError(f"mock failure in {method}")

    def called(self, method: str) -> list[dict[str, Any]]:
        """Every recorded call to a method, in order."""
        return [c for c in self.calls if c["method"] == method]

    async def fetch_member(self, server_id: str, member_id: str) -> Member | None:
        self._record("fetch_member", server_id=server_id, member_id=member_id)
        return self._members.get((server_id, member_id))

    async def add_role(self, server_id: str, member_id: str, role_id: str) -> None:
        self._record("add_role", server_id=server_id, member_id=member_id, role_id=role_id)
        member = self._members.get((server_id, member_id))
        if member is not None:
            self._members[(server_id, member_id)] = replace(
                member, role_ids=member.role_ids | {role_id}
            )

    async def remove_role(self, server_id: str, member_id: str, role_id: str) -> None:
        self._record(
            "remove_role", server_id=server_id, member_id=member_id, role_id=role_id
        )
        member = self._members.get((server_id, member_id))
        if member is not None:
            self._members[(server_id, member_id)] = replace(
                member, role_ids=member.role_ids - {role_id}
            )

    async def set_display_name(
        self, server_id: str, member_id: str, display_name: str
    ) -> None:
        self._record(
            "set_display_name",
            server_id=server_id,
            member_id=member_id,
            display_name=display_name,
        )
        member = self._members.get((server_id, member_id))
        if member is not None:
            self._members[(server_id, member_id)] = replace(
                member, display_name=display_name
            )

    async def send_direct_message(self, user_id: str, content: str) -> None:
        self._record("send_direct_message", user_id=user_id)
        self.direct_messages.append((user_id, content))

    async def send_channel_message(self, channel_id: str, content: str) -> None:
        self._record("send_channel_message", channel_id=channel_id)
        self.channel_messages.append((channel_id, content))

    async def fetch_server_name(self, server_id: str) -> str | None:
        self._record("fetch_server_name", server_id=server_id)
        return self._server_names.get(server_id)
