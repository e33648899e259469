from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine

from cmms.domain.errors import ConflictError
from cmms.domain.models import WorkOrder
from cmms.services import numbering
from cmms.services.numbering import WORK_ORDER_PREFIX, format_number, next_number, retry_on_conflict


def test_format_number_pads_to_three_digits() -> None:
    assert format_number("WO", 7) == "WO-007"
    assert format_number("WR", 42) == "WR-042"
    assert format_number("WO", 999) == "WO-999"
    assert format_number("WO", 1000) == "WO-1000"


def test_next_number_counts_rows_and_skips_taken_numbers() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        assert next_number(session, WorkOrder, WorkOrder.work_order_number, WORK_ORDER_PREFIX) == "WO-001"
        session.add(WorkOrder(work_order_number="WO-002", title="manual number"))
        session.commit()
        # one row exists, so WO-002 is the first candidate and it is taken
        assert next_number(session, WorkOrder, WorkOrder.work_order_number, WORK_ORDER_PREFIX) == "WO-003"


def test_retry_on_conflict_retries_then_succeeds() -> None:
    calls: list[int] = []

    def operation() -> str:
        calls.append(1)
        if len(calls) < 2:
            raise IntegrityError("INSERT", {}, Exception("duplicate"))
        return "ok"

    assert retry_on_conflict(operation, what="test insert", attempts=3) == "ok"
    assert len(calls) == 2


def test_retry_on_conflict_gives_up_with_conflict_error() -> None:
    def operation() -> str:
        raise IntegrityError("INSERT", {}, Exception("duplicate"))

    with pytest.raises(ConflictError):
        retry_on_conflict(operation, what="test insert", attempts=2)


def test_retry_on_conflict_runs_once_when_retries_are_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(numbering, "NUMBER_RETRY_ATTEMPTS", 0)
    calls: list[int] = []

    def operation() -> str:
        calls.append(1)
        return "ok"

    assert retry_on_conflict(operation, what="test insert") == "ok"
    assert retry_on_conflict(operation, what="test insert", attempts=0) == "ok"
    assert len(calls) == 2
