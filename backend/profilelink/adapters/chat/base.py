"""Capability interface for the chat platform.

The completer and the audit logger need only a narrow slice of the chat
platform: member lookup, role changes, renaming, and message delivery. Each
mutating method raises on failure; the callers treat every such call as a
best-effort side effect.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Member:
    """Snapshot of a server member.

    Attributes:
        member_id: Chat-platform user id.
        server_id: Chat-platform server id.
        display_name: Name shown in the server (nickname or global name).
        role_ids: Roles held when the snapshot was taken.
    """

    member_id: str
    server_id: str
    display_name: str
    role_ids: frozenset[str] = field(default_factory=frozenset)


class ChatPlatformClient(ABC):
    """Narrow chat-platform client used by the verification engine."""

    @abstractmethod
    async def fetch_member(self, server_id: str, member_id: str) -> Member | None:
        """Fetch a member, or None if they are not in the server."""

    def has_role(self, member: Member, role_id: str) -> bool:
        """Whether the member snapshot holds a role."""
        return role_id in member.role_ids

    @abstractmethod
    async def add_role(self, server_id: str, member_id: str, role_id: str) -> None:
        """Grant a role to a member."""

    @abstractmethod
    async def remove_role(self, server_id: str, member_id: str, role_id: str) -> None:
        """Remove a role from a member."""

    @abstractmethod
    async def set_display_name(
        self, server_id: str, member_id: str, display_name: str
    ) -> None:
        """Set the member's server nickname."""

    @abstractmethod
    async def send_direct_message(self, user_id: str, content: str) -> None:
        """Send a private message to a user."""

    @abstractmethod
    async def send_channel_message(self, channel_id: str, content: str) -> None:
        """Post a message to a server channel."""

    @abstractmethod
    async def fetch_server_name(self, server_id: str) -> str | None:
        """Return the server's name, or None if it cannot be seen."""
