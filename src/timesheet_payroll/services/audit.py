"""Audit trail helper shared by the payroll services."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.models import AuditEvent


def record_audit(
    session: AsyncSession,
    organization_id: int,
    entity_type: str,
    entity_id: UUID,
    action: str,
    actor: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Add an audit event to the session. Flushed with the caller's unit of work."""
    event = AuditEvent(
        organization_id=organization_id,
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details,
    )
    session.add(event)
    return event
