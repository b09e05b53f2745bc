"""Tests for ProfileScanner: candidate discovery and fetch strategy chain.

Covers:
- Whitespace/case-insensitive code matching
- Strategy fallback and partial-failure tolerance
- Authenticated strategy gating on the session credential
- Discovery order and short-circuiting
- Expiry short-circuit (no network)
- Discovery failure and scan deadline -> TransientUpstreamError
"""

import asyncio
from datetime import timedelta

import httpx
import pytest

from profilelink.adapters.identity.mock_adapter import MockIdentityProvider
from profilelink.adapters.identity.roblox import RobloxIdentityProvider
from profilelink.core.errors import TransientUpstreamError
from profilelink.services.profile_scanner import (
    ProfileScanner,
    contains_code,
    normalize_for_match,
    strip_discriminator,
)
from profilelink.services.verification_types import (
    CODE_TTL,
    ExternalAccount,
    PendingVerification,
    ScanOutcome,
)
from tests.conftest import FIXED_NOW, SERVER_ID, SUBJECT_ID, MutableClock

_CODE = "VERIFY-AB12CD"


def _pending(hint: str | None = "Builderman", *, code: str = _CODE) -> PendingVerification:
    return PendingVerification(
        subject_id=SUBJECT_ID,
        server_id=SERVER_ID,
        code=code,
        created_at=FIXED_NOW,
        expires_at=FIXED_NOW + CODE_TTL,
        username_hint=hint,
    )


@pytest.fixture
def identity() -> MockIdentityProvider:
    """Identity provider without a session credential."""
    return MockIdentityProvider()


@pytest.fixture
def scanner(identity: MockIdentityProvider, clock: MutableClock) -> ProfileScanner:
    """Scanner over the mock identity provider."""
    return ProfileScanner(identity, clock=clock)


# =============================================================================
# Matching helpers
# =============================================================================


class TestMatching:
    """Code matching normalization."""

    def test_normalize_strips_all_whitespace_and_lowercases(self) -> None:
        """Tabs, newlines, and spaces all disappear."""
        assert normalize_for_match(" VERIFY -\tab\n12 CD ") == "verify-ab12cd"

    def test_code_with_interior_whitespace_and_mixed_case_matches(self) -> None:
        """Profile text that spaces out or re-cases the code still matches."""
        assert contains_code("hello verify - Ab 12\ncd world", _CODE)

    def test_missing_code_does_not_match(self) -> None:
        """Text without the code is not a match."""
        assert not contains_code("VERIFY-ZZZZZZ", _CODE)

    def test_empty_text_does_not_match(self) -> None:
        """None and empty text never match."""
        assert not contains_code(None, _CODE)
        assert not contains_code("", _CODE)

    def test_strip_discriminator(self) -> None:
        """Legacy #1234 suffixes are dropped."""
        assert strip_discriminator("Builderman#0420") == "Builderman"
        assert strip_discriminator("Builderman") == "Builderman"


# =============================================================================
# Strategy chain
# =============================================================================


class TestStrategies:
    """Fetch strategies per candidate."""

    async def test_scenario_code_in_description_matches(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """Profile 'hi <code> bye' on account 42 is a match for account 42."""
        identity.add_account("42", "Builderman", description=f"hi {_CODE} bye")

        result = await scanner.scan(_pending(), "Member#0001")

        assert result.outcome is ScanOutcome.MATCHED
        assert result.matched
        assert result.external_id == "42"
        assert result.external_username == "Builderman"

    async def test_first_matching_strategy_stops_the_chain(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """Nothing after the matching strategy is tried."""
        identity.add_account("42", "Builderman", description=_CODE)

        await scanner.scan(_pending(), "Member")

        assert identity.called("fetch_profile_header") == []
        assert identity.called("fetch_profile_page") == []

    async def test_failed_strategies_fall_through_to_later_ones(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """Transport errors in early strategies do not stop the chain."""
        identity.add_account("42", "Builderman")
        identity.failing = {"fetch_description", "fetch_profile_header"}
        identity.set_text("fetch_profile_page", "42", f"<div>{_CODE.lower()}</div>")

        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.MATCHED
        assert result.external_id == "42"

    async def test_strategy_without_code_moves_to_next_strategy(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """A strategy that returns text lacking the code is not final."""
        identity.add_account("42", "Builderman", description="just a bio")
        identity.set_text("fetch_profile_header", "42", f"bio {_CODE}")

        result = await scanner.scan(_pending(), "Member")

        assert result.matched
        assert identity.called("fetch_profile_page") == []

    async def test_all_strategies_failing_or_missing_is_not_matched(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """No code anywhere, with some strategies erroring, is NOT_MATCHED
        and raises nothing."""
        identity.add_account("42", "Builderman", description="nothing here")
        identity.failing = {"fetch_profile_header", "fetch_profile_page"}

        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.NOT_MATCHED
        assert not result.matched
        assert result.external_id is None

    async def test_non_text_strategy_result_falls_through(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """A strategy returning something other than text is skipped."""
        identity.add_account("42", "Builderman")
        identity.set_text("fetch_description", "42", ["oops"])  # type: ignore[arg-type]
        identity.set_text("fetch_profile_header", "42", f"hi {_CODE} bye")

        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.MATCHED
        assert result.external_id == "42"

    async def test_malformed_roblox_description_falls_through_to_header(
        self, clock: MutableClock
    ) -> None:
        """A description field that is not a string does not abort the scan."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/usernames/users":
                return httpx.Response(200, json={"data": [{"id": 42, "name": "Builderman"}]})
            if request.url.path == "/v1/users/42":
                return httpx.Response(200, json={"description": ["oops"]})
            if request.url.path == "/users/profile/profileheader-json":
                return httpx.Response(200, json={"Description": f"hi {_CODE} bye"})
            return httpx.Response(404)

        provider = RobloxIdentityProvider(
            users_api_base="https://users.test",
            web_base="https://www.test",
            friends_api_base="https://friends.test",
            transport=httpx.MockTransport(handler),
        )

        result = await ProfileScanner(provider, clock=clock).scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.MATCHED
        assert result.external_id == "42"
        assert result.external_username == "Builderman"

    async def test_authenticated_strategy_skipped_without_session(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """Without a session credential the authenticated endpoint is never called."""
        identity.add_account("42", "Builderman")
        identity.set_text("fetch_authenticated_profile", "42", _CODE)

        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.NOT_MATCHED
        assert identity.called("fetch_authenticated_profile") == []

    async def test_authenticated_strategy_runs_last_with_session(
        self, clock: MutableClock
    ) -> None:
        """With a session credential the authenticated endpoint is the last resort."""
        identity = MockIdentityProvider(has_session=True)
        identity.add_account("42", "Builderman")
        identity.set_text("fetch_authenticated_profile", "42", _CODE)
        scanner = ProfileScanner(identity, clock=clock)

        result = await scanner.scan(_pending(), "Member")

        assert result.matched
        methods = [c["method"] for c in identity.calls]
        assert methods == [
            "lookup_by_names",
            "fetch_description",
            "fetch_profile_header",
            "fetch_profile_page",
            "fetch_authenticated_profile",
        ]

    async def test_candidates_scanned_in_discovery_order(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """The second search result is checked after the first one fails to match."""
        first = identity.add_account("1", "Member1")
        second = identity.add_account("2", "Member2", description=_CODE)
        identity.set_search_results("Member", [first, second])

        result = await scanner.scan(_pending(hint=None), "Member")

        assert result.external_id == "2"
        assert identity.called("fetch_description") == ["1", "2"]


# =============================================================================
# Discovery
# =============================================================================


class TestDiscovery:
    """Candidate discovery order and failure handling."""

    async def test_hint_lookup_short_circuits(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """A hit on the hint skips the display-name lookup and search."""
        identity.add_account("42", "Builderman")

        await scanner.discover("Builderman", "Member#1234")

        assert identity.called("lookup_by_names") == [["Builderman"]]
        assert identity.called("search") == []

    async def test_falls_back_to_stripped_display_name(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """An unknown hint falls back to the display name without discriminator."""
        identity.add_account("7", "Member")

        accounts = await scanner.discover("Unknown", "Member#1234")

        assert [a.external_id for a in accounts] == ["7"]
        assert identity.called("lookup_by_names") == [["Unknown"], ["Member"]]
        assert identity.called("search") == []

    async def test_falls_back_to_keyword_search(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """With no exact hits, the keyword search results are the candidates."""
        found = ExternalAccount(external_id="9", username="MemberFan")
        identity.set_search_results("Member", [found])

        accounts = await scanner.discover(None, "Member#1234")

        assert accounts == [found]
        assert identity.called("search") == ["Member"]

    async def test_no_candidates_is_not_matched(
        self, scanner: ProfileScanner, identity: MockIdentityProvider
    ) -> None:
        """Zero candidates is a normal NOT_MATCHED outcome."""
        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.NOT_MATCHED
        assert identity.called("fetch_description") == []

    @pytest.mark.parametrize("failing", ["lookup_by_names", "search"])
    async def test_discovery_failure_raises_transient_error(
        self, scanner: ProfileScanner, identity: MockIdentityProvider, failing: str
    ) -> None:
        """A failed discovery call means 'could not check', not 'not matched'."""
        identity.failing = {failing}

        with pytest.raises(TransientUpstreamError):
            await scanner.scan(_pending(hint=None), "Member")


# =============================================================================
# Expiry and deadline
# =============================================================================


class TestExpiryAndDeadline:
    """Expired attempts and the overall scan deadline."""

    async def test_expired_pending_returns_expired_without_network(
        self,
        scanner: ProfileScanner,
        identity: MockIdentityProvider,
        clock: MutableClock,
    ) -> None:
        """Past expires_at the result is EXPIRED regardless of profile content."""
        identity.add_account("42", "Builderman", description=_CODE)
        clock.advance(CODE_TTL + timedelta(seconds=1))

        result = await scanner.scan(_pending(), "Member")

        assert result.outcome is ScanOutcome.EXPIRED
        assert identity.calls == []

    async def test_pending_at_exact_expiry_is_still_scanned(
        self,
        scanner: ProfileScanner,
        identity: MockIdentityProvider,
        clock: MutableClock,
    ) -> None:
        """Expiry is strict: now == expires_at is still live."""
        identity.add_account("42", "Builderman", description=_CODE)
        clock.advance(CODE_TTL)

        result = await scanner.scan(_pending(), "Member")

        assert result.matched

    async def test_deadline_exceeded_raises_transient_error(
        self, identity: MockIdentityProvider, clock: MutableClock
    ) -> None:
        """A scan slower than its deadline is abandoned."""

        async def slow_lookup(names: list[str]):
            await asyncio.sleep(1)
            return []

        identity.lookup_by_names = slow_lookup  # type: ignore[method-assign]
        scanner = ProfileScanner(identity, deadline_seconds=0.01, clock=clock)

        with pytest.raises(TransientUpstreamError):
            await scanner.scan(_pending(), "Member")

    async def test_cancellation_propagates(
        self, identity: MockIdentityProvider, clock: MutableClock
    ) -> None:
        """Cancelling a scan is not swallowed by strategy error handling."""
        identity.add_account("42", "Builderman")
        started = asyncio.Event()

        async def hanging_fetch(external_id: str):
            started.set()
            await asyncio.sleep(10)

        identity.fetch_description = hanging_fetch  # type: ignore[method-assign]
        scanner = ProfileScanner(identity, clock=clock)

        task = asyncio.create_task(scanner.scan(_pending(), "Member"))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
