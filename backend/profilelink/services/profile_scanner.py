"""Profile scanner: finds a verification code in an external profile.

Two ordered, short-circuiting chains:

1. Candidate discovery. The first step that yields at least one account wins:
   exact lookup of the username hint, exact lookup of the chat display name
   (with any "#discriminator" stripped), keyword search of that name.
   A failed discovery call means we could not check at all, so it raises
   TransientUpstreamError instead of reporting "not matched".

2. Fetch strategies, per candidate in discovery order: public description,
   profile header, rendered profile page, and (only with a session
   credential) the authenticated endpoint. A failed strategy, or one that
   returns something other than text, is logged and the chain moves on. The first strategy whose text contains the code ends
   the scan.

Matching strips all whitespace and lower-cases both sides, then checks
substring containment.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from profilelink.adapters.identity.base import IdentityProvider
from profilelink.core.errors import TransientUpstreamError
from profilelink.services.verification_types import (
    ExternalAccount,
    MatchResult,
    PendingVerification,
    ScanOutcome,
)

logger = structlog.get_logger()

# Maximum accounts taken from a keyword search
SEARCH_LIMIT = 10

FetchStrategy = Callable[[str], Awaitable[str | None]]
DiscoveryStep = Callable[[], Awaitable[list[ExternalAccount]]]


def normalize_for_match(text: str) -> str:
    """Remove every whitespace character and lower-case the rest."""
    return "".join(text.split()).lower()


def contains_code(text: str | None, code: str) -> bool:
    """Whitespace- and case-insensitive substring test.

    Args:
        text: Profile text; None or empty never matches.
        code: Verification code.

    Returns:
        True if the normalized code occurs in the normalized text.
    """
    if not text:
        return False
    needle = normalize_for_match(code)
    return bool(needle) and needle in normalize_for_match(text)


def strip_discriminator(display_name: str) -> str:
    """Drop a legacy "#1234" discriminator from a chat display name."""
    return display_name.split("#", 1)[0].strip()


class ProfileScanner:
    """Scans candidate external profiles for a pending verification code.

    Args:
        identity: External identity API client. Whether the authenticated
            strategy runs is decided by identity.has_session, which is fixed
            when the client is constructed.
        deadline_seconds: Upper bound on a whole scan. None disables it.
        clock: Source of "now" for the expiry check.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        deadline_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._identity = identity
        self._deadline_seconds = deadline_seconds
        self._clock = clock or (lambda: datetime.now(UTC))

    def _strategies(self) -> list[tuple[str, FetchStrategy]]:
        strategies: list[tuple[str, FetchStrategy]] = [
            ("description", self._identity.fetch_description),
            ("profile_header", self._identity.fetch_profile_header),
            ("profile_page", self._identity.fetch_profile_page),
        ]
        if self._identity.has_session:
            strategies.append(
                ("authenticated", self._identity.fetch_authenticated_profile)
            )
        return strategies

    async def scan(
        self,
        pending: PendingVerification,
        subject_display_name: str,
    ) -> MatchResult:
        """Look for the pending code in the profiles of candidate accounts.

        Args:
            pending: The attempt whose code is searched for.
            subject_display_name: The member's chat-platform name.

        Returns:
            EXPIRED (no network call) if the attempt is past expiry,
            MATCHED with the account on the first hit, NOT_MATCHED otherwise.

        Raises:
            TransientUpstreamError: If a discovery call fails or the scan
                exceeds its deadline.
        """
        if pending.is_expired(self._clock()):
            logger.info(
                "verification_scan_expired",
                subject_id=pending.subject_id,
                server_id=pending.server_id,
            )
            return MatchResult(outcome=ScanOutcome.EXPIRED)

        if self._deadline_seconds is None:
            return await self._scan(pending, subject_display_name)

        try:
            async with asyncio.timeout(self._deadline_seconds):
                return await self._scan(pending, subject_display_name)
        except TimeoutError as exc:
            logger.warning(
                "verification_scan_deadline_exceeded",
                subject_id=pending.subject_id,
                server_id=pending.server_id,
                deadline_seconds=self._deadline_seconds,
            )
            raise TransientUpstreamError(
                "Checking your profile took too long. Please try again."
            ) from exc

    async def _scan(
        self,
        pending: PendingVerification,
        subject_display_name: str,
    ) -> MatchResult:
        candidates = await self.discover(pending.username_hint, subject_display_name)
        if not candidates:
            logger.info(
                "verification_scan_no_candidates",
                subject_id=pending.subject_id,
                server_id=pending.server_id,
            )
            return MatchResult(outcome=ScanOutcome.NOT_MATCHED)

        strategies = self._strategies()
        for candidate in candidates:
            for strategy_name, fetch in strategies:
                try:
                    text = await fetch(candidate.external_id)
                    if text is not None and not isinstance(text, str):
                        raise TypeError(f"expected text, got {type(text).__name__}")
                    matched = contains_code(text, pending.code)
                except Exception as exc:
                    logger.warning(
                        "profile_fetch_strategy_failed",
                        strategy=strategy_name,
                        external_id=candidate.external_id,
                        error_type=type(exc).__name__,
                    )
                    continue

                if matched:
                    logger.info(
                        "verification_code_found",
                        strategy=strategy_name,
                        subject_id=pending.subject_id,
                        external_id=candidate.external_id,
                    )
                    return MatchResult(
                        outcome=ScanOutcome.MATCHED,
                        external_id=candidate.external_id,
                        external_username=candidate.username,
                    )

        logger.info(
            "verification_code_not_found",
            subject_id=pending.subject_id,
            candidates=len(candidates),
        )
        return MatchResult(outcome=ScanOutcome.NOT_MATCHED)

    async def discover(
        self,
        username_hint: str | None,
        subject_display_name: str,
    ) -> list[ExternalAccount]:
        """Find candidate external accounts, stopping at the first hit.

        Args:
            username_hint: External username supplied by the member, if any.
            subject_display_name: The member's chat-platform name.

        Returns:
            Candidates in discovery order; empty if no step found any.

        Raises:
            TransientUpstreamError: If any discovery call fails.
        """
        name = strip_discriminator(subject_display_name)

        steps: list[tuple[str, DiscoveryStep]] = []
        if username_hint:
            steps.append(
                ("hint_lookup", lambda: self._identity.lookup_by_names([username_hint]))
            )
        if name:
            steps.append(("name_lookup", lambda: self._identity.lookup_by_names([name])))
            steps.append(
                ("keyword_search", lambda: self._identity.search(name, SEARCH_LIMIT))
            )

        for step_name, step in steps:
            try:
                accounts = await step()
            except Exception as exc:
                logger.warning(
                    "candidate_discovery_failed",
                    step=step_name,
                    error_type=type(exc).__name__,
                )
                raise TransientUpstreamError() from exc

            if accounts:
                logger.debug(
                    "candidate_discovery_hit", step=step_name, count=len(accounts)
                )
                return accounts

        return []
