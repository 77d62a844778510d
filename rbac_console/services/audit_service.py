"""Access audit — sign-ins, impersonation and grant changes."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from rbac_console.authz.model import Principal
from rbac_console.core.exceptions import ValidationError
from rbac_console.models.access_event import AccessEvent

logger = logging.getLogger(__name__)

# event -> kind of record it is about
EVENT_TARGETS = {
    "login": "user",
    "login.failed": "user",
    "logout": "user",
    "login_as": "user",
    "user.created": "user",
    "user.roles_changed": "user",
    "user.deleted": "user",
    "role.created": "role",
    "role.updated": "role",
    "role.deleted": "role",
    "permission.created": "permission",
    "permission.moved": "permission",
    "permission.deleted": "permission",
}


def grant_delta(before: Iterable[str], after: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Names added and names removed going from ``before`` to ``after``, each sorted."""
    old, new = set(before or ()), set(after or ())
    return sorted(new - old), sorted(old - new)


def _names(raw: Optional[str]) -> List[str]:
    return json.loads(raw) if raw else []


class AuditService:
    """Append-only record of who signed in and who changed which grants."""

    @staticmethod
    def record(
        db: Session,
        actor: Optional[Principal],
        event: str,
        target_id: Optional[int] = None,
        target_name: Optional[str] = None,
        before: Iterable[str] = (),
        after: Iterable[str] = (),
    ) -> AccessEvent:
        """Append one event and commit it.

        ``before`` and ``after`` are the target's grant set around the change;
        only the difference is stored.
        """
        target_type = EVENT_TARGETS.get(event)
        if target_type is None:
            raise ValueError(f"Unknown access event {event!r}")
        granted, revoked = grant_delta(before, after)
        entry = AccessEvent(
            event=event,
            actor_id=actor.user_id if actor else None,
            actor_name=actor.name if actor else None,
            impersonator_id=actor.impersonator_id if actor else None,
            target_type=target_type,
            target_id=target_id,
            target_name=target_name,
            granted=json.dumps(granted, ensure_ascii=False) if granted else None,
            revoked=json.dumps(revoked, ensure_ascii=False) if revoked else None,
        )
        db.add(entry)
        db.commit()
        logger.info(
            "%s by %s on %s %r (+%d/-%d)",
            event, actor.name if actor else "-", target_type, target_name, len(granted), len(revoked),
        )
        return entry

    @staticmethod
    def history(
        db: Session,
        event: Optional[str] = None,
        target_type: Optional[str] = None,
        actor: Optional[str] = None,
        target: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Events newest first. ``actor`` and ``target`` match names exactly."""
        if event and event not in EVENT_TARGETS:
            raise ValidationError(f"Unknown event '{event}'")
        query = db.query(AccessEvent)
        if event:
            query = query.filter(AccessEvent.event == event)
        if target_type:
            query = query.filter(AccessEvent.target_type == target_type)
        if actor:
            query = query.filter(AccessEvent.actor_name == actor)
        if target:
            query = query.filter(AccessEvent.target_name == target)

        total = query.count()
        rows = (
            query.order_by(AccessEvent.occurred_at.desc(), AccessEvent.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "events": [AuditService.describe(row) for row in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    def describe(row: AccessEvent) -> Dict[str, Any]:
        return {
            "id": row.id,
            "occurred_at": row.occurred_at,
            "event": row.event,
            "actor_id": row.actor_id,
            "actor_name": row.actor_name,
            "impersonator_id": row.impersonator_id,
            "target_type": row.target_type,
            "target_id": row.target_id,
            "target_name": row.target_name,
            "granted": _names(row.granted),
            "revoked": _names(row.revoked),
        }


audit_service = AuditService()
