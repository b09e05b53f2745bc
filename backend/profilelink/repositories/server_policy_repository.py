"""Repository for ServerPolicyRecord operations."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.models.verification import ServerPolicyRecord


class ServerPolicyRepository:
    """Stateless repository for server_policies table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get(db: AsyncSession, server_id: str) -> ServerPolicyRecord | None:
        """Get the stored policy for a server.

        Args:
            db: Async database session.
            server_id: Chat-platform server id.

        Returns:
            ServerPolicyRecord if stored, None otherwise.
        """
        stmt = select(ServerPolicyRecord).where(
            ServerPolicyRecord.server_id == server_id
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        db: AsyncSession,
        server_id: str,
        values: dict[str, Any],
    ) -> ServerPolicyRecord:
        """Write policy columns, creating the row if absent.

        Locks an existing row (SELECT ... FOR UPDATE) so concurrent partial
        updates to the same server serialize instead of losing writes.

        Args:
            db: Async database session.
            server_id: Chat-platform server id.
            values: Column name to value mapping. Unlisted columns keep their
                stored (or default) value.

        Returns:
            The written ServerPolicyRecord.
        """
        stmt = (
            select(ServerPolicyRecord)
            .where(ServerPolicyRecord.server_id == server_id)
            .with_for_update()
        )
        result = await db.execute(stmt)
        record = result.scalar_one_or_none()

        if record is None:
            record = ServerPolicyRecord(server_id=server_id, **values)
            db.add(record)
        else:
            for key, value in values.items():
                setattr(record, key, value)

        await db.flush()
        await db.refresh(record)
        return record
