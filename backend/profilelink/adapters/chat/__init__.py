"""Chat-platform adapters.

This module provides:
- ChatPlatformClient capability interface and the Member snapshot
- DiscordRestClient for Discord's REST API
- MockChatClient for tests
"""

from profilelink.adapters.chat.base import ChatPlatformClient, Member
from profilelink.adapters.chat.discord import DiscordRestClient
from profilelink.adapters.chat.mock_adapter import MockChatClient

__all__ = [
    "ChatPlatformClient",
    "DiscordRestClient",
    "Member",
    "MockChatClient",
]
