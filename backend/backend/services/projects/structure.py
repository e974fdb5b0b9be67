"""Variation orders and structure containers.

Children are numbered ``<parent_code>_<n>``. A structure container never
has its status set directly; it follows its children.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.tenant import scoped
from app.db.models.projects import Project, ProjectStatus, ProjectType

log = logging.getLogger(__name__)

PROJECT_CODE_RE = re.compile(r"^J\d{5}$")


def is_valid_project_code(code: str | None) -> bool:
    return bool(code and PROJECT_CODE_RE.match(code))


def container_status(child_statuses: Iterable[str]) -> str:
    """All completed -> completed; any started -> ongoing; else pre-lim."""
    statuses = list(child_statuses)
    if statuses and all(s == ProjectStatus.COMPLETED.value for s in statuses):
        return ProjectStatus.COMPLETED.value
    if any(s in (ProjectStatus.ONGOING.value, ProjectStatus.COMPLETED.value) for s in statuses):
        return ProjectStatus.ONGOING.value
    return ProjectStatus.PRE_LIM.value


def next_child_number(parent_code: str, child_codes: Iterable[str]) -> int:
    """Highest ``_N`` suffix under ``parent_code`` plus one."""
    pat = re.compile(rf"^{re.escape(parent_code)}_(\d+)$")
    highest = 0
    for code in child_codes:
        m = pat.match(code or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return highest + 1


def apply_status_dates(project: Project, status: str, today: date | None = None) -> None:
    """Stamp the milestone date that goes with a status, once."""
    today = today or date.today()
    if status == ProjectStatus.ONGOING.value and not project.po_received_date:
        project.po_received_date = today
    elif status == ProjectStatus.COMPLETED.value and not project.completion_date:
        project.completion_date = today


def children_of(db: Session, parent_id: str, project_type: str) -> list[Project]:
    q = db.query(Project).filter(Project.parent_project_id == parent_id, Project.project_type == project_type)
    return scoped(q, Project).order_by(Project.project_code).all()


def sync_container_status(db: Session, container_id: str) -> bool:
    """Recompute a container's status from its structures. Caller commits."""
    container = scoped(db.query(Project), Project).filter(Project.id == container_id).first()
    if container is None or container.project_type != ProjectType.STRUCTURE_CONTAINER.value:
        return False

    children = children_of(db, container_id, ProjectType.STRUCTURE_CHILD.value)
    if not children:
        return False

    new_status = container_status(c.status for c in children)
    if new_status == container.status:
        return False

    log.info("container %s status %s -> %s", container.project_code, container.status, new_status)
    container.status = new_status
    apply_status_dates(container, new_status)
    return True


def container_stats(container: Project, children: list[Project]) -> dict:
    ongoing = sum(1 for c in children if c.status == ProjectStatus.ONGOING.value)
    completed = sum(1 for c in children if c.status == ProjectStatus.COMPLETED.value)
    prelim = sum(1 for c in children if c.status == ProjectStatus.PRE_LIM.value)
    return {
        "total_structures": len(children),
        "ongoing_count": ongoing,
        "completed_count": completed,
        "prelim_count": prelim,
        "auto_status": f"Auto: {container.status} ({ongoing + completed} of {len(children)})",
    }


def taken_child_codes(db: Session, parent: Project) -> list[str]:
    """Every ``<code>_N`` already used, whatever the child's type."""
    q = db.query(Project.project_code).filter(Project.project_code.like(f"{parent.project_code}\\_%", escape="\\"))
    return [code for (code,) in scoped(q, Project).all()]
