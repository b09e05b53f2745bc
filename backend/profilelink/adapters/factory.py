"""Adapter factory functions.

Singleton pattern for the chat client and identity provider: both are built
once from settings so the session cookie and bot token are injected at
construction and never read from the environment ad hoc.
"""

from profilelink.adapters.chat.base import ChatPlatformClient
from profilelink.adapters.chat.discord import DiscordRestClient
from profilelink.adapters.identity.base import IdentityProvider
from profilelink.adapters.identity.roblox import RobloxIdentityProvider
from profilelink.core.config import Settings, settings

_chat_client: ChatPlatformClient | None = None
_identity_provider: IdentityProvider | None = None


def get_chat_client(config: Settings | None = None) -> ChatPlatformClient:
    """Get or create the chat-platform client singleton.

    Args:
        config: Settings to build from on first call. Defaults to the
            module-level settings.

    Returns:
        ChatPlatformClient instance.
    """
    global _chat_client

    if _chat_client is None:
        config = config or settings
        _chat_client = DiscordRestClient(
            bot_token=config.discord_bot_token.get_secret_value(),
            api_base=config.discord_api_base,
            timeout=config.http_timeout_seconds,
        )

    return _chat_client


def get_identity_provider(config: Settings | None = None) -> IdentityProvider:
    """Get or create the identity provider singleton.

    Args:
        config: Settings to build from on first call. Defaults to the
            module-level settings.

    Returns:
        IdentityProvider instance.
    """
    global _identity_provider

    if _identity_provider is None:
        config = config or settings
        _identity_provider = RobloxIdentityProvider(
            users_api_base=config.roblox_users_api_base,
            web_base=config.roblox_web_base,
            friends_api_base=config.roblox_friends_api_base,
            timeout=config.http_timeout_seconds,
            session_cookie=config.roblox_session,
        )

    return _identity_provider


def reset_adapters() -> None:
    """Reset adapter singletons (for testing)."""
    global _chat_client, _identity_provider
    _chat_client = None
    _identity_provider = None
