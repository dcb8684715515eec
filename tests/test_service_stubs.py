"""Tests for the external collaborator stubs: employee directory, calendar, audit sink."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from leaveflow.models.audit import AuditLog
from leaveflow.services.audit import (
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
    deliver_audit_entry,
    set_audit_sink,
)
from leaveflow.services.calendar import WeekdayCalendar, WorkingDayCalendar
from leaveflow.services.employee import (
    EmployeeDirectory,
    EmployeeInfo,
    InMemoryEmployeeDirectory,
    reports_to,
    set_employee_directory,
)

if TYPE_CHECKING:
    import pytest

COMPANY_A = uuid.uuid4()
COMPANY_B = uuid.uuid4()


def _make_employee(company_id: uuid.UUID, name: str = "Jane", dept_head_id: uuid.UUID | None = None) -> EmployeeInfo:
    return EmployeeInfo(
        id=uuid.uuid4(),
        company_id=company_id,
        name=name,
        email=f"{name.lower()}@example.com",
        dept_head_id=dept_head_id,
    )


def _make_entry() -> AuditLog:
    return AuditLog(
        company_id=COMPANY_A,
        actor_id=uuid.uuid4(),
        actor_role="CEO",
        entity_type="LEAVE_REQUEST",
        entity_id=uuid.uuid4(),
        action="APPROVE",
        after_json={"status": "APPROVED"},
    )


# ---------------------------------------------------------------------------
# InMemoryEmployeeDirectory tests
# ---------------------------------------------------------------------------


def test_directory_satisfies_protocol() -> None:
    assert isinstance(InMemoryEmployeeDirectory(), EmployeeDirectory)


async def test_directory_get_not_found() -> None:
    directory = InMemoryEmployeeDirectory()
    assert await directory.get_employee(COMPANY_A, uuid.uuid4()) is None


async def test_directory_list_filters_by_company() -> None:
    directory = InMemoryEmployeeDirectory()
    emp_a = _make_employee(COMPANY_A, "Alice")
    emp_b = _make_employee(COMPANY_B, "Bob")
    directory.seed(emp_a)
    directory.seed(emp_b)

    result_a = await directory.list_employees(COMPANY_A)
    assert [e.id for e in result_a] == [emp_a.id]


async def test_reports_to() -> None:
    head_id = uuid.uuid4()
    directory = InMemoryEmployeeDirectory()
    emp = _make_employee(COMPANY_A, dept_head_id=head_id)
    directory.seed(emp)
    set_employee_directory(directory)

    assert await reports_to(COMPANY_A, emp.id, head_id)
    assert not await reports_to(COMPANY_A, emp.id, uuid.uuid4())
    assert not await reports_to(COMPANY_A, uuid.uuid4(), head_id)


# ---------------------------------------------------------------------------
# WeekdayCalendar tests
# ---------------------------------------------------------------------------


def test_calendar_satisfies_protocol() -> None:
    assert isinstance(WeekdayCalendar(), WorkingDayCalendar)


async def test_calendar_skips_weekends() -> None:
    calendar = WeekdayCalendar()
    # Monday 2025-03-03 through Sunday 2025-03-16.
    assert await calendar.working_days(date(2025, 3, 3), date(2025, 3, 16), None) == 10


async def test_calendar_skips_holidays() -> None:
    calendar = WeekdayCalendar()
    calendar.add_holiday(date(2025, 3, 5))
    assert await calendar.working_days(date(2025, 3, 3), date(2025, 3, 7), None) == 4


async def test_calendar_single_weekend_day() -> None:
    calendar = WeekdayCalendar()
    assert await calendar.working_days(date(2025, 3, 8), date(2025, 3, 8), None) == 0


# ---------------------------------------------------------------------------
# Audit sink tests
# ---------------------------------------------------------------------------


def test_sinks_satisfy_protocol() -> None:
    assert isinstance(LoggingAuditSink(), AuditSink)
    assert isinstance(InMemoryAuditSink(), AuditSink)


async def test_deliver_to_memory_sink() -> None:
    sink = InMemoryAuditSink()
    set_audit_sink(sink)
    entry = _make_entry()

    assert await deliver_audit_entry(entry) is True
    assert len(sink.entries) == 1
    delivered = sink.entries[0]
    assert delivered["id"] == str(entry.id)
    assert delivered["action"] == "APPROVE"
    assert delivered["after_json"] == {"status": "APPROVED"}


async def test_logging_sink_emits_record(caplog: pytest.LogCaptureFixture) -> None:
    set_audit_sink(LoggingAuditSink())
    with caplog.at_level(logging.INFO, logger="leaveflow.audit"):
        await deliver_audit_entry(_make_entry())
    assert "audit action=APPROVE" in caplog.text


class _FailingSink:
    async def record(self, entry: dict[str, Any]) -> None:
        msg = "bus unavailable"
        raise RuntimeError(msg)


async def test_delivery_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    set_audit_sink(_FailingSink())
    assert await deliver_audit_entry(_make_entry()) is False
    assert "audit_delivery_failed" in caplog.text
