"""Human-readable record numbers (``WO-001``, ``WR-001``).

Numbers are derived from the current row count and skip any value already
taken. The unique constraint on the number column catches concurrent writers;
callers wrap the whole unit of work in :func:`retry_on_conflict` so that a
collision rolls back and is recomputed instead of surfacing as a 500.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from cmms.domain.errors import ConflictError

logger = logging.getLogger(__name__)

WORK_ORDER_PREFIX = "WO"
WORK_REQUEST_PREFIX = "WR"
NUMBER_RETRY_ATTEMPTS = int(os.getenv("NUMBER_RETRY_ATTEMPTS", "3"))

T = TypeVar("T")


def format_number(prefix: str, value: int) -> str:
    return f"{prefix}-{value:03d}"


def next_number(session: Session, model: type[SQLModel], column: Any, prefix: str) -> str:
    count = session.exec(select(func.count()).select_from(model)).one()
    candidate = int(count) + 1
    while session.exec(select(column).where(column == format_number(prefix, candidate))).first() is not None:
        candidate += 1
    return format_number(prefix, candidate)


def retry_on_conflict(operation: Callable[[], T], *, what: str, attempts: int | None = None) -> T:
    # always run the operation at least once
    max_attempts = max(1, NUMBER_RETRY_ATTEMPTS if attempts is None else attempts)
    last_error: IntegrityError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except IntegrityError as exc:
            last_error = exc
            logger.warning("%s hit a uniqueness conflict (attempt %d/%d)", what, attempt, max_attempts)
    raise ConflictError(f"{what} conflicted with a concurrent write") from last_error
