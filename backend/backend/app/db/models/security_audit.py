from __future__ import annotations
from sqlalchemy import String, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasTenant

__all__ = ["AuditLog"]

class AuditLog(Base, HasId, HasCreatedAt, HasTenant):
    __tablename__ = "sys_audit_log"
    actor: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)  # e.g. purchase_order.adjust_myr
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

Index("ix_audit_tenant_time", AuditLog.tenant_id, AuditLog.created_at)
