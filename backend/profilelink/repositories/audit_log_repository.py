"""Repository for the append-only verification audit log.

No update or delete methods exist by design of the table: entries are
immutable once written.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.models.verification import AuditLogRecord


class AuditLogRepository:
    """Stateless repository for verification_audit_log table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        subject_id: str,
        display_name: str,
        external_username: str | None,
        server_id: str,
        status: str,
        message: str,
    ) -> AuditLogRecord:
        """Append an audit entry.

        Args:
            db: Async database session.
            subject_id: Chat-platform user id.
            display_name: Chat-platform name.
            external_username: External username, if known.
            server_id: Chat-platform server id.
            status: pending, success, or failed.
            message: Human-readable description.

        Returns:
            Created AuditLogRecord with server-generated created_at.
        """
        record = AuditLogRecord(
            subject_id=subject_id,
            display_name=display_name,
            external_username=external_username,
            server_id=server_id,
            status=status,
            message=message,
        )
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @staticmethod
    async def list_for_server(
        db: AsyncSession,
        server_id: str,
        *,
        limit: int,
    ) -> list[AuditLogRecord]:
        """List the newest entries for a server.

        Args:
            db: Async database session.
            server_id: Chat-platform server id.
            limit: Maximum number of entries.

        Returns:
            Entries ordered newest first.
        """
        stmt = (
            select(AuditLogRecord)
            .where(AuditLogRecord.server_id == server_id)
            .order_by(AuditLogRecord.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
