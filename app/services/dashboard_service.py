from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.book import Author, Book, Category
from app.models.loan import Loan
from app.models.user import User
from app.utils.timezone import now_local


def build_stats(db: Session, current_user: Optional[User] = None, now: Optional[datetime] = None) -> dict:
    """Counts shown on the dashboard; system-wide figures only for staff."""
    now = now or now_local()
    stats = {
        "totalBooks": db.query(Book).count(),
        "availableBooks": db.query(Book).filter(Book.available.is_(True)).count(),
        "borrowedBooks": db.query(Book).filter(Book.available.is_(False)).count(),
        "userLoans": 0,
        "overdueLoans": 0,
    }

    if current_user is None:
        return stats

    stats["userLoans"] = current_user.active_loan_count()
    stats["overdueLoans"] = current_user.overdue_loan_count(now)

    if current_user.can_view_all_loans():
        active = db.query(Loan).filter(Loan.returned_at.is_(None))
        stats.update({
            "totalUsers": db.query(User).count(),
            "totalLoans": db.query(Loan).count(),
            "activeLoans": active.count(),
            "overdueLoansSystem": active.filter(Loan.due_date < now).count(),
            "totalAuthors": db.query(Author).count(),
            "totalCategories": db.query(Category).count(),
        })
    return stats


def user_loans(db: Session, current_user: User, now: Optional[datetime] = None) -> list:
    now = now or now_local()
    loans = db.query(Loan).filter(
        Loan.user_id == current_user.user_id,
        Loan.returned_at.is_(None)
    ).order_by(Loan.due_date.asc()).all()
    return [loan.to_dict(now) for loan in loans]


def recent_books(db: Session, limit: int = 5) -> list:
    books = db.query(Book).order_by(Book.created_at.desc(), Book.book_id.desc()).limit(limit).all()
    return [book.to_dict() for book in books]


def recent_loans(db: Session, current_user: User, limit: int = 5, now: Optional[datetime] = None) -> list:
    """Latest loans across all users; empty for borrowers."""
    if not current_user.can_view_all_loans():
        return []
    now = now or now_local()
    loans = db.query(Loan).order_by(Loan.borrowed_at.desc(), Loan.loan_id.desc()).limit(limit).all()
    result = []
    for loan in loans:
        data = loan.to_dict(now)
        data["user"] = {"id": str(loan.user.user_id), "email": loan.user.user_email}
        result.append(data)
    return result
