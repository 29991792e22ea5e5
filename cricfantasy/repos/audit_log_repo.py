"""
Audit log repository for finalization and sweep tracking
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from cricfantasy.models.audit_log import AuditLog


async def create_audit_log(
    session: AsyncSession,
    action: str,
    details: dict,
    actor: Optional[str] = None
) -> AuditLog:
    """
    Add an audit log entry to the current transaction.

    Args:
        session: Database session
        action: Action performed
        details: Additional details as JSON
        actor: Who triggered the action (admin name, "scheduler", "cli")

    Returns:
        Flushed AuditLog instance; the caller commits
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        details=details
    )
    session.add(audit_log)
    await session.flush()
    return audit_log


async def get_audit_logs(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    action: Optional[str] = None
) -> List[AuditLog]:
    """
    Get audit log entries, newest first.

    Args:
        session: Database session
        limit: Maximum number of entries to return
        offset: Number of entries to skip
        action: Filter by action

    Returns:
        List of AuditLog instances
    """
    query = select(AuditLog).order_by(desc(AuditLog.created_at))
    if action:
        query = query.where(AuditLog.action == action)
    query = query.limit(limit).offset(offset)

    result = await session.execute(query)
    return result.scalars().all()
