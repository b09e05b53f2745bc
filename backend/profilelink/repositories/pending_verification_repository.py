"""Repository for PendingVerificationRecord CRUD operations.

One live row per (subject_id, server_id). Rows are replaced, never updated.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.models.verification import PendingVerificationRecord


class PendingVerificationRepository:
    """Stateless repository for pending_verifications table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get(
        db: AsyncSession,
        *,
        subject_id: str,
        server_id: str,
    ) -> PendingVerificationRecord | None:
        """Look up the pending attempt for a key.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.

        Returns:
            PendingVerificationRecord if found, None otherwise.
        """
        stmt = select(PendingVerificationRecord).where(
            PendingVerificationRecord.subject_id == subject_id,
            PendingVerificationRecord.server_id == server_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_code(
        db: AsyncSession,
        code: str,
    ) -> PendingVerificationRecord | None:
        """Look up a pending attempt by its code.

        Codes are not globally unique; the most recently issued row wins.

        Args:
            db: Async database session.
            code: Verification code.

        Returns:
            PendingVerificationRecord if found, None otherwise.
        """
        stmt = (
            select(PendingVerificationRecord)
            .where(PendingVerificationRecord.code == code)
            .order_by(PendingVerificationRecord.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        subject_id: str,
        server_id: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
        username_hint: str | None = None,
    ) -> PendingVerificationRecord:
        """Insert a new pending attempt.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.
            code: Verification code.
            created_at: Issuance time.
            expires_at: Expiry time.
            username_hint: Optional external username.

        Returns:
            Created PendingVerificationRecord.

        Raises:
            sqlalchemy.exc.IntegrityError: If a row already exists for the key.
        """
        record = PendingVerificationRecord(
            subject_id=subject_id,
            server_id=server_id,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            username_hint=username_hint,
        )
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @staticmethod
    async def delete(
        db: AsyncSession,
        *,
        subject_id: str,
        server_id: str,
    ) -> bool:
        """Delete the pending attempt for a key.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.

        Returns:
            True if a row was deleted.
        """
        stmt = delete(PendingVerificationRecord).where(
            PendingVerificationRecord.subject_id == subject_id,
            PendingVerificationRecord.server_id == server_id,
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0
