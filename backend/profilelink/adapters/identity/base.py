"""Abstract interface for the external identity platform.

The scanner depends only on this interface. Every method performs at most
one outbound call and raises on transport or HTTP failure; callers decide
whether a failure is fatal (candidate discovery) or skippable (profile
fetch strategies).
"""

from abc import ABC, abstractmethod

from profilelink.services.verification_types import ExternalAccount


class IdentityProvider(ABC):
    """Read-only client for the external identity platform."""

    @property
    @abstractmethod
    def has_session(self) -> bool:
        """True when an authenticated session credential was supplied."""

    @abstractmethod
    async def lookup_by_names(self, names: list[str]) -> list[ExternalAccount]:
        """Exact (case-insensitive) username lookup.

        Args:
            names: Usernames to resolve.

        Returns:
            Matching accounts; empty when none exist.
        """

    @abstractmethod
    async def search(self, keyword: str, limit: int) -> list[ExternalAccount]:
        """Keyword search of the account directory.

        Args:
            keyword: Search term.
            limit: Maximum number of accounts to return.

        Returns:
            Accounts in the platform's relevance order.
        """

    @abstractmethod
    async def fetch_description(self, external_id: str) -> str | None:
        """Public profile description from the users API."""

    @abstractmethod
    async def fetch_profile_header(self, external_id: str) -> str | None:
        """Description from the public profile-header endpoint."""

    @abstractmethod
    async def fetch_profile_page(self, external_id: str) -> str | None:
        """Rendered profile page markup."""

    @abstractmethod
    async def fetch_authenticated_profile(self, external_id: str) -> str | None:
        """Description from an endpoint that requires the session credential."""
