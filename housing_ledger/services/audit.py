"""Best-effort client history and audit log writes.

Called after the primary change is committed. A failure here is logged and
rolled back on its own; it never undoes or fails the primary change.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext
from housing_ledger.models.entities import Activity, AuditLog, ClientHistory

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FieldChange:
    field: str
    old_value: object
    new_value: object


def _text(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


IGNORED_FIELDS = frozenset({"id", "client_id", "client_month_id", "created_at", "created_by", "uploaded_at"})


def changed_fields(
    before: dict[str, object] | None,
    after: dict[str, object] | None,
    *,
    prefix: str = "",
    suffix: str = "",
) -> list[FieldChange]:
    """Field-level differences between two snapshots.

    History keys read ``<prefix><field><suffix>``, e.g.
    ``housing_support.amount[2025-03]``.
    """

    before = before or {}
    after = after or {}
    changes: list[FieldChange] = []
    for key in dict.fromkeys([*before.keys(), *after.keys()]):
        if key in IGNORED_FIELDS:
            continue
        old_value = before.get(key)
        new_value = after.get(key)
        if _text(old_value) != _text(new_value):
            changes.append(FieldChange(field=f"{prefix}{key}{suffix}", old_value=old_value, new_value=new_value))
    return changes


class AuditTrail:
    """Append-only ClientHistory, AuditLog and Activity writer."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _write(
        self,
        *,
        context: RequestUserContext | None,
        action_type: str,
        entity: str,
        entity_id: UUID | str | None,
        client_id: UUID | None,
        old_data: dict[str, object] | None,
        new_data: dict[str, object] | None,
        changes: Iterable[FieldChange],
    ) -> None:
        now = datetime.utcnow()
        actor_id = context.user_id if context else None
        if client_id is not None:
            for change in changes:
                self.db.add(
                    ClientHistory(
                        client_id=client_id,
                        field_changed=change.field,
                        old_value=_text(change.old_value),
                        new_value=_text(change.new_value),
                        changed_by=actor_id,
                        changed_at=now,
                    )
                )
        self.db.add(
            AuditLog(
                user_id=actor_id,
                action_type=action_type,
                entity=entity,
                entity_id=str(entity_id) if entity_id is not None else None,
                old_data=old_data,
                new_data=new_data,
                created_at=now,
            )
        )
        self.db.commit()

    def record(
        self,
        *,
        context: RequestUserContext | None,
        action_type: str,
        entity: str,
        entity_id: UUID | str | None,
        client_id: UUID | None = None,
        old_data: dict[str, object] | None = None,
        new_data: dict[str, object] | None = None,
        changes: Iterable[FieldChange] = (),
    ) -> bool:
        """Write history rows plus one audit row. Returns ``False`` on failure."""

        try:
            self._write(
                context=context,
                action_type=action_type,
                entity=entity,
                entity_id=entity_id,
                client_id=client_id,
                old_data=old_data,
                new_data=new_data,
                changes=list(changes),
            )
        except Exception:
            self.db.rollback()
            logger.exception("audit trail write failed for %s %s (%s)", entity, entity_id, action_type)
            return False
        return True

    def activity(self, message: str, *, related_client_id: UUID | None = None) -> None:
        try:
            self.db.add(Activity(message=message, related_client_id=related_client_id, created_at=datetime.utcnow()))
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("activity write failed: %s", message)
