from datetime import date

import pytest

from app.db.models.projects import Project
from services.projects.structure import apply_status_dates, container_status, is_valid_project_code, next_child_number


@pytest.mark.parametrize("statuses, expected", [
    ([], "pre-lim"),
    (["pre-lim", "pre-lim"], "pre-lim"),
    (["pre-lim", "ongoing"], "ongoing"),
    (["completed", "pre-lim"], "ongoing"),
    (["completed", "completed"], "completed"),
])
def test_container_status_follows_children(statuses, expected):
    assert container_status(statuses) == expected


def test_next_child_number_skips_other_parents():
    codes = ["J25001_1", "J25001_3", "J250011_9", "J25002_5", None]
    assert next_child_number("J25001", codes) == 4
    assert next_child_number("J25007", codes) == 1


@pytest.mark.parametrize("code, ok", [
    ("J25001", True),
    ("j25001", False),
    ("J2500", False),
    ("J250011", False),
    ("J25001_1", False),
    ("", False),
    (None, False),
])
def test_project_code_format(code, ok):
    assert is_valid_project_code(code) is ok


def test_status_dates_are_stamped_once():
    p = Project(project_code="J25001", title="Jetty")
    apply_status_dates(p, "ongoing", date(2025, 1, 2))
    apply_status_dates(p, "ongoing", date(2025, 6, 1))
    apply_status_dates(p, "completed", date(2025, 9, 30))
    assert p.po_received_date == date(2025, 1, 2)
    assert p.completion_date == date(2025, 9, 30)
