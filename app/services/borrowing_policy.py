"""Borrowing rules shared by the loan model and the loan service.

Everything here is a plain function of its arguments; callers pass ``now``
explicitly so due-date and overdue arithmetic stays testable.
"""
from datetime import datetime, timedelta
from typing import Optional
from app.utils.timezone import ensure_aware

MAX_ACTIVE_LOANS_PER_USER = 5
DEFAULT_LOAN_DURATION = timedelta(days=14)


def can_borrow(active_loan_count: int) -> bool:
    return active_loan_count < MAX_ACTIVE_LOANS_PER_USER


def default_due_date(borrowed_at: datetime) -> datetime:
    return borrowed_at + DEFAULT_LOAN_DURATION


def resolve_due_date(borrowed_at: datetime, requested: Optional[datetime] = None) -> datetime:
    """Use the requested due date when given, otherwise the default loan duration."""
    if requested is not None:
        return ensure_aware(requested)
    return default_due_date(borrowed_at)


def due_date_valid(borrowed_at: Optional[datetime], due_date: Optional[datetime]) -> bool:
    if due_date is None:
        return False
    if borrowed_at is None:
        return True
    return ensure_aware(due_date) > ensure_aware(borrowed_at)


def is_overdue(loan, now: datetime) -> bool:
    return loan.returned_at is None and ensure_aware(loan.due_date) < ensure_aware(now)


def days_overdue(loan, now: datetime) -> int:
    if not is_overdue(loan, now):
        return 0
    now = ensure_aware(now)
    return (now.date() - loan.due_date.astimezone(now.tzinfo).date()).days
