"""Borrow and return transitions.

Each transition runs in a single transaction on the caller's session: the
loan row is written first and the book's ``available`` flag is flipped only
after that write succeeds, so a failed transition leaves both untouched.
Rows are re-read with ``SELECT ... FOR UPDATE`` before any check, which
serialises concurrent borrows of the same book on PostgreSQL. The partial
unique index on active loans is the backstop everywhere else.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.models.book import Book
from app.models.loan import Loan
from app.models.user import User
from app.services.errors import (
    LoanError,
    BorrowLimitExceeded,
    BookUnavailable,
    ValidationFailed,
    LoanNotFound,
)
from app.utils.timezone import now_local, ensure_aware

logger = logging.getLogger(__name__)


@dataclass
class LoanResult:
    ok: bool
    loan: Optional[Loan] = None
    error: Optional[LoanError] = None

    @classmethod
    def success(cls, loan: Loan) -> "LoanResult":
        return cls(ok=True, loan=loan)

    @classmethod
    def failure(cls, error: LoanError) -> "LoanResult":
        return cls(ok=False, error=error)


def _locked(query):
    return query.with_for_update().populate_existing()


def borrow(
    db: Session,
    user: User,
    book: Optional[Book],
    requested_due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> LoanResult:
    """Lend ``book`` to ``user``; returns the new loan on success."""
    now = ensure_aware(now) if now else now_local()
    if book is None:
        return LoanResult.failure(BookUnavailable("Book not found"))

    try:
        borrower = _locked(db.query(User).filter(User.user_id == user.user_id)).one()
        locked_book = _locked(db.query(Book).filter(Book.book_id == book.book_id)).one_or_none()
        if locked_book is None:
            raise BookUnavailable("Book not found")

        if not borrower.can_borrow_book():
            raise BorrowLimitExceeded()
        if not locked_book.available:
            raise BookUnavailable()

        loan = Loan.open(borrower, locked_book, now, requested_due_date)
        errors = loan.validation_errors(on_create=True)
        if errors:
            raise ValidationFailed(errors)

        db.add(loan)
        db.flush()
        locked_book.available = False
        db.commit()
    except LoanError as e:
        db.rollback()
        logger.warning(f"Borrow rejected - User: {user.user_id}, Book: {book.book_id}, Reason: {e.code}")
        return LoanResult.failure(e)
    except IntegrityError:
        # Another transaction created an active loan for this book first
        db.rollback()
        logger.warning(f"Borrow lost race - User: {user.user_id}, Book: {book.book_id}")
        return LoanResult.failure(BookUnavailable())

    db.refresh(loan)
    logger.info(
        f"Loan {loan.loan_id} created - User: {loan.user_id}, Book: {loan.book_id}, "
        f"Due: {loan.due_date.isoformat()}"
    )
    return LoanResult.success(loan)


def return_loan(db: Session, loan: Optional[Loan], now: Optional[datetime] = None) -> LoanResult:
    """Mark ``loan`` returned and make its book available again."""
    now = ensure_aware(now) if now else now_local()
    if loan is None:
        return LoanResult.failure(LoanNotFound())

    loan_id = loan.loan_id
    try:
        locked_loan = _locked(db.query(Loan).filter(Loan.loan_id == loan_id)).one_or_none()
        if locked_loan is None:
            raise LoanNotFound()

        locked_loan.mark_returned(now)
        errors = locked_loan.validation_errors()
        if errors:
            raise ValidationFailed(errors)
        db.flush()

        book = _locked(db.query(Book).filter(Book.book_id == locked_loan.book_id)).one()
        book.available = True
        db.commit()
    except LoanError as e:
        db.rollback()
        logger.warning(f"Return rejected - Loan: {loan_id}, Reason: {e.code}")
        return LoanResult.failure(e)

    db.refresh(locked_loan)
    logger.info(f"Loan {locked_loan.loan_id} returned - Book: {locked_loan.book_id} is available")
    return LoanResult.success(locked_loan)
