"""Mock identity provider for testing.

MockIdentityProvider enables scanner and workflow tests without hitting the
real Roblox APIs.
"""

from typing import Any

import httpx

from profilelink.adapters.identity.base import IdentityProvider
from profilelink.services.verification_types import ExternalAccount


class MockIdentityProvider(IdentityProvider):
    """In-memory identity provider with scriptable failures.

    Attributes:
        calls: Record of all method invocations for test assertions.
        failing: Method names that raise httpx.ConnectError when called.
    """

    def __init__(self, *, has_session: bool = False) -> None:
        self._has_session = has_session
        self._accounts: dict[str, ExternalAccount] = {}
        self._search_results: dict[str, list[ExternalAccount]] = {}
        self._texts: dict[str, dict[str, str | None]] = {
            "fetch_description": {},
            "fetch_profile_header": {},
            "fetch_profile_page": {},
            "fetch_authenticated_profile": {},
        }
        self.calls: list[dict[str, Any]] = []
        self.failing: set[str] = set()

    @property
    def has_session(self) -> bool:
        """Whether the authenticated strategy is available."""
        return self._has_session

    # -- Test setup -----------------------------------------------------------

    def add_account(
        self,
        external_id: str,
        username: str,
        *,
        display_name: str | None = None,
        description: str | None = None,
    ) -> ExternalAccount:
        """Register an account resolvable by exact username lookup."""
        account = ExternalAccount(
            external_id=external_id, username=username, display_name=display_name
        )
        self._accounts[username.lower()] = account
        if description is not None:
            self._texts["fetch_description"][external_id] = description
        return account

    def set_search_results(self, keyword: str, accounts: list[ExternalAccount]) -> None:
        """Set what a keyword search returns."""
        self._search_results[keyword.lower()] = list(accounts)

    def set_text(self, method: str, external_id: str, text: str | None) -> None:
        """Set the text a fetch strategy returns for an account."""
        self._texts[method][external_id] = text

    # -- Helpers --------------------------------------------------------------

    def _record(self, method: str, argument: Any) -> None:
        self.calls.append({"method": method, "argument": argument})
        if method in self.failing:
            raise httpx.ConnectError(f"mock failure in {method}")

    def called(self, method: str) -> list[Any]:
        """Arguments of every call to a method, in order."""
        return [c["argument"] for c in self.calls if c["method"] == method]

    # -- IdentityProvider -----------------------------------------------------

    async def lookup_by_names(self, names: list[str]) -> list[ExternalAccount]:
        self._record("lookup_by_names", list(names))
        return [
            self._accounts[name.lower()]
            for name in names
            if name.lower() in self._accounts
        ]

    async def search(self, keyword: str, limit: int) -> list[ExternalAccount]:
        self._record("search", keyword)
        return self._search_results.get(keyword.lower(), [])[:limit]

    async def fetch_description(self, external_id: str) -> str | None:
        self._record("fetch_description", external_id)
        return self._texts["fetch_description"].get(external_id)

    async def fetch_profile_header(self, external_id: str) -> str | None:
        self._record("fetch_profile_header", external_id)
        return self._texts["fetch_profile_header"].get(external_id)

    async def fetch_profile_page(self, external_id: str) -> str | None:
        self._record("fetch_profile_page", external_id)
        return self._texts["fetch_profile_page"].get(external_id)

    async def fetch_authenticated_profile(self, external_id: str) -> str | None:
        self._record("fetch_authenticated_profile", external_id)
        return self._texts["fetch_authenticated_profile"].get(external_id)
