from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from app.db.models.security_audit import AuditLog
from app.core.tenant import get_tenant_id


def current_actor(request: Request) -> str:
    """Who to record on audit rows.

    Authentication lives in front of this service; the gateway forwards the user.
    """
    return request.headers.get("X-Actor") or "system"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    payload: dict | None = None,
    tenant_id: str | None = None,
    commit: bool = True,
) -> None:
    """Write an append-only audit record.

    Payload values that are not JSON-native (Decimal, date) are stored as float/str.
    """
    tenant_id = tenant_id or get_tenant_id()
    safe_payload: dict[str, Any] = payload or {}
    try:
        safe_payload = json.loads(json.dumps(safe_payload, default=_jsonable))
    except (TypeError, ValueError):
        safe_payload = {"_payload_error": "non_json", "_payload_repr": repr(payload)}

    db.add(
        AuditLog(
            tenant_id=tenant_id,
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=safe_payload,
        )
    )
    if commit:
        db.commit()
