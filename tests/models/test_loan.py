"""Tests for Loan status, validation and the active-loan index."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy.exc import IntegrityError

from app.models import Book, Loan, User
from app.services.errors import LoanAlreadyReturned, LoanNotFound

DAY0 = datetime(2025, 3, 1, 10, 0, tzinfo=pytz.utc)


def _book(available: bool = True) -> Book:
    return Book(title="The Dispossessed", isbn="978-0-06-051275-0", available=available)


def test_open_fills_borrowed_at_and_default_due_date():
    loan = Loan.open(User(), _book(), DAY0)

    assert loan.borrowed_at == DAY0
    assert loan.due_date == DAY0 + timedelta(days=14)
    assert loan.returned_at is None
    assert loan.is_active


def test_open_keeps_requested_due_date():
    loan = Loan.open(User(), _book(), DAY0, due_date=DAY0 + timedelta(days=7))
    assert loan.due_date == DAY0 + timedelta(days=7)


def test_status_moves_from_active_to_overdue_to_returned():
    loan = Loan.open(User(), _book(), DAY0)

    assert loan.status(DAY0 + timedelta(days=13)) == "active"
    assert loan.status(DAY0 + timedelta(days=20)) == "overdue"
    assert loan.days_overdue(DAY0 + timedelta(days=20)) == 6

    loan.mark_returned(DAY0 + timedelta(days=20))
    assert loan.status(DAY0 + timedelta(days=20)) == "returned"
    assert loan.status(DAY0 + timedelta(days=400)) == "returned"


def test_mark_returned_twice_is_rejected_and_keeps_first_timestamp():
    loan = Loan.open(User(), _book(), DAY0)
    loan.mark_returned(DAY0 + timedelta(days=2))

    with pytest.raises(LoanAlreadyReturned) as excinfo:
        loan.mark_returned(DAY0 + timedelta(days=3))

    assert isinstance(excinfo.value, LoanNotFound)
    assert loan.returned_at == DAY0 + timedelta(days=2)


def test_validation_requires_due_date_after_borrowed_at():
    loan = Loan.open(User(), _book(), DAY0, due_date=DAY0 - timedelta(days=1))
    assert loan.validation_errors() == {"due_date": ["must be after borrowed date"]}

    loan.due_date = None
    assert loan.validation_errors() == {"due_date": ["can't be blank"]}


def test_book_availability_is_checked_only_on_create():
    loan = Loan.open(User(), _book(available=False), DAY0)

    assert loan.validation_errors(on_create=True) == {"book": ["is not available"]}
    assert loan.validation_errors() == {}


def test_database_rejects_second_active_loan_for_a_book(db, make_user, make_book):
    book = make_book()
    first, second = make_user(), make_user()
    db.add(Loan(user_id=first.user_id, book_id=book.book_id, borrowed_at=DAY0, due_date=DAY0 + timedelta(days=14)))
    db.commit()

    db.add(Loan(user_id=second.user_id, book_id=book.book_id, borrowed_at=DAY0, due_date=DAY0 + timedelta(days=14)))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_database_allows_new_loan_once_previous_is_returned(db, make_user, make_book):
    book = make_book()
    user = make_user()
    db.add(Loan(
        user_id=user.user_id, book_id=book.book_id, borrowed_at=DAY0,
        due_date=DAY0 + timedelta(days=14), returned_at=DAY0 + timedelta(days=1),
    ))
    db.add(Loan(user_id=user.user_id, book_id=book.book_id, borrowed_at=DAY0, due_date=DAY0 + timedelta(days=14)))
    db.commit()

    assert db.query(Loan).count() == 2


def test_timestamps_round_trip_as_aware_utc(db, make_user, make_book):
    book, user = make_book(), make_user()
    db.add(Loan(user_id=user.user_id, book_id=book.book_id, borrowed_at=DAY0, due_date=DAY0 + timedelta(days=14)))
    db.commit()
    db.expire_all()

    loan = db.query(Loan).one()
    assert loan.borrowed_at == DAY0
    assert loan.borrowed_at.tzinfo is not None
    assert book.current_loan() is loan
