from __future__ import annotations

from sqlalchemy.orm import Session

from field_inventory.models import AuditLog


def log_audit(
    db: Session,
    *,
    action: str,
    site_id_canonical: str | None,
    record_id: str | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            action=action,
            site_id_canonical=site_id_canonical,
            record_id=record_id,
            meta=metadata or {},
        )
    )
