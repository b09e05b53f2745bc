"""Repository for VerifiedLinkRecord CRUD operations.

One row per (subject_id, server_id). Reverification deletes then creates.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.models.verification import VerifiedLinkRecord


class VerifiedLinkRepository:
    """Stateless repository for verified_links table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get(
        db: AsyncSession,
        *,
        subject_id: str,
        server_id: str,
    ) -> VerifiedLinkRecord | None:
        """Look up the link for a key.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.

        Returns:
            VerifiedLinkRecord if found, None otherwise.
        """
        stmt = select(VerifiedLinkRecord).where(
            VerifiedLinkRecord.subject_id == subject_id,
            VerifiedLinkRecord.server_id == server_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        subject_id: str,
        server_id: str,
        subject_display_name: str,
        external_id: str,
        external_username: str,
        code: str,
    ) -> VerifiedLinkRecord:
        """Insert a link.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.
            subject_display_name: Chat-platform name at verification time.
            external_id: External account id.
            external_username: External username.
            code: Code that proved ownership.

        Returns:
            Created VerifiedLinkRecord with server-generated verified_at.

        Raises:
            sqlalchemy.exc.IntegrityError: If a link already exists for the key.
        """
        record = VerifiedLinkRecord(
            subject_id=subject_id,
            server_id=server_id,
            subject_display_name=subject_display_name,
            external_id=external_id,
            external_username=external_username,
            code=code,
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
        """Delete the link for a key.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.

        Returns:
            True if a row was deleted.
        """
        stmt = delete(VerifiedLinkRecord).where(
            VerifiedLinkRecord.subject_id == subject_id,
            VerifiedLinkRecord.server_id == server_id,
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0
