"""Tests for the borrow and return transitions in loan_service."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytz

from app.models import Book, Loan
from app.services import loan_service
from app.services.errors import (
    BookUnavailable,
    BorrowLimitExceeded,
    LoanAlreadyReturned,
    LoanNotFound,
    ValidationFailed,
)

DAY0 = datetime(2025, 3, 1, 10, 0, tzinfo=pytz.utc)


def _active_loans(db, book: Book) -> int:
    return db.query(Loan).filter(Loan.book_id == book.book_id, Loan.returned_at.is_(None)).count()


def test_borrow_creates_loan_and_marks_book_unavailable(db, make_user, make_book):
    user, book = make_user(), make_book()

    result = loan_service.borrow(db, user, book, now=DAY0)

    assert result.ok
    assert result.error is None
    loan = result.loan
    assert loan.loan_id is not None
    assert loan.user_id == user.user_id
    assert loan.borrowed_at == DAY0
    assert loan.due_date == DAY0 + timedelta(days=14)
    assert loan.status(DAY0) == "active"

    db.expire_all()
    assert book.available is False
    assert book.is_borrowed
    assert book.current_loan().loan_id == loan.loan_id
    assert _active_loans(db, book) == 1
    assert user.active_loan_count() == 1


def test_borrow_uses_requested_due_date(db, make_user, make_book):
    result = loan_service.borrow(
        db, make_user(), make_book(), requested_due_date=DAY0 + timedelta(days=5), now=DAY0
    )

    assert result.ok
    assert result.loan.due_date == DAY0 + timedelta(days=5)


def test_sixth_borrow_exceeds_limit_and_creates_nothing(db, make_user, make_book):
    user = make_user()
    for _ in range(5):
        assert loan_service.borrow(db, user, make_book(), now=DAY0).ok
    extra = make_book()

    result = loan_service.borrow(db, user, extra, now=DAY0)

    assert not result.ok
    assert isinstance(result.error, BorrowLimitExceeded)
    assert result.error.status_code == 422
    assert "maximum number of borrowed books (5)" in result.error.message
    db.expire_all()
    assert db.query(Loan).count() == 5
    assert extra.available is True


def test_limit_is_checked_before_availability(db, make_user, make_book):
    holder, reader = make_user(), make_user()
    taken = make_book()
    assert loan_service.borrow(db, holder, taken, now=DAY0).ok
    for _ in range(5):
        assert loan_service.borrow(db, reader, make_book(), now=DAY0).ok

    result = loan_service.borrow(db, reader, taken, now=DAY0)

    assert isinstance(result.error, BorrowLimitExceeded)


def test_borrow_of_unavailable_book_leaves_existing_loan_alone(db, make_user, make_book):
    first, second = make_user(), make_user()
    book = make_book()
    existing = loan_service.borrow(db, first, book, now=DAY0).loan

    result = loan_service.borrow(db, second, book, now=DAY0 + timedelta(days=1))

    assert not result.ok
    assert isinstance(result.error, BookUnavailable)
    db.expire_all()
    assert existing.user_id == first.user_id
    assert existing.returned_at is None
    assert existing.due_date == DAY0 + timedelta(days=14)
    assert _active_loans(db, book) == 1
    assert second.active_loan_count() == 0


def test_invalid_due_date_fails_without_touching_book(db, make_user, make_book):
    user, book = make_user(), make_book()

    result = loan_service.borrow(
        db, user, book, requested_due_date=DAY0 - timedelta(days=1), now=DAY0
    )

    assert not result.ok
    assert isinstance(result.error, ValidationFailed)
    assert result.error.errors == {"due_date": ["must be after borrowed date"]}
    assert result.error.to_detail()["errors"] == {"due_date": ["must be after borrowed date"]}
    db.expire_all()
    assert book.available is True
    assert db.query(Loan).count() == 0


def test_active_loan_index_blocks_borrow_when_flag_is_out_of_sync(db, make_user, make_book):
    first, second = make_user(), make_user()
    book = make_book()
    assert loan_service.borrow(db, first, book, now=DAY0).ok
    # Simulate a stray write that flipped the flag back without returning the loan
    book.available = True
    db.commit()

    result = loan_service.borrow(db, second, book, now=DAY0)

    assert not result.ok
    assert isinstance(result.error, BookUnavailable)
    db.expire_all()
    assert _active_loans(db, book) == 1
    assert second.active_loan_count() == 0


def test_borrow_of_missing_book_is_reported_as_unavailable(db, make_user):
    result = loan_service.borrow(db, make_user(), None, now=DAY0)

    assert isinstance(result.error, BookUnavailable)
    assert result.error.message == "Book not found"


def test_return_marks_loan_returned_and_book_available(db, make_user, make_book):
    user, book = make_user(), make_book()
    loan = loan_service.borrow(db, user, book, now=DAY0).loan

    result = loan_service.return_loan(db, loan, now=DAY0 + timedelta(days=3))

    assert result.ok
    assert result.loan.returned_at == DAY0 + timedelta(days=3)
    assert result.loan.status(DAY0 + timedelta(days=3)) == "returned"
    db.expire_all()
    assert book.available is True
    assert _active_loans(db, book) == 0
    assert user.active_loan_count() == 0


def test_second_return_is_rejected_and_keeps_first_timestamp(db, make_user, make_book):
    loan = loan_service.borrow(db, make_user(), make_book(), now=DAY0).loan
    assert loan_service.return_loan(db, loan, now=DAY0 + timedelta(days=2)).ok

    result = loan_service.return_loan(db, loan, now=DAY0 + timedelta(days=9))

    assert not result.ok
    assert isinstance(result.error, LoanAlreadyReturned)
    assert isinstance(result.error, LoanNotFound)
    assert result.error.status_code == 404
    db.expire_all()
    assert loan.returned_at == DAY0 + timedelta(days=2)


def test_return_without_loan_is_not_found(db):
    result = loan_service.return_loan(db, None)

    assert not result.ok
    assert type(result.error) is LoanNotFound
    assert result.error.to_detail() == {"code": "loan_not_found", "message": "Loan not found"}


def test_returned_book_can_be_borrowed_again(db, make_user, make_book):
    first, second = make_user(), make_user()
    book = make_book()
    loan = loan_service.borrow(db, first, book, now=DAY0).loan
    assert loan_service.return_loan(db, loan, now=DAY0 + timedelta(days=1)).ok

    result = loan_service.borrow(db, second, book, now=DAY0 + timedelta(days=2))

    assert result.ok
    db.expire_all()
    assert book.available is False
    assert _active_loans(db, book) == 1


def test_overdue_scenario_from_borrow_to_late_return(db, make_user, make_book):
    user, book = make_user(), make_book()
    day14 = DAY0 + timedelta(days=14)
    day20 = DAY0 + timedelta(days=20)

    loan = loan_service.borrow(db, user, book, now=DAY0).loan
    assert loan.due_date == day14
    db.expire_all()
    assert book.available is False

    assert loan.status(day20) == "overdue"
    assert user.overdue_loan_count(day20) == 1

    result = loan_service.return_loan(db, loan, now=day20)

    assert result.ok
    assert loan.returned_at == day20
    assert loan.status(day20) == "returned"
    db.expire_all()
    assert book.available is True
    assert user.overdue_loan_count(day20) == 0
