from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy import Column, DateTime, Integer, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, TZDateTime
from app.services import borrowing_policy
from app.services.errors import LoanAlreadyReturned
from app.utils.timezone import now_local

class Loan(Base):
    __tablename__ = "loan"

    loan_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("book.book_id", ondelete="CASCADE"), nullable=False, index=True)
    borrowed_at = Column(TZDateTime, nullable=False)
    due_date = Column(TZDateTime, nullable=False, index=True)
    returned_at = Column(TZDateTime, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        # At most one active loan per book, enforced by the database
        Index(
            "uq_loan_active_book",
            "book_id",
            unique=True,
            postgresql_where=text("returned_at IS NULL"),
            sqlite_where=text("returned_at IS NULL"),
        ),
    )

    @classmethod
    def open(cls, user, book, now: datetime, due_date: Optional[datetime] = None) -> "Loan":
        """Build a new, unsaved loan starting at ``now``."""
        return cls(
            user=user,
            book=book,
            borrowed_at=now,
            due_date=borrowing_policy.resolve_due_date(now, due_date),
        )

    @property
    def is_active(self) -> bool:
        return self.returned_at is None

    @property
    def is_returned(self) -> bool:
        return self.returned_at is not None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return borrowing_policy.is_overdue(self, now or now_local())

    def days_overdue(self, now: Optional[datetime] = None) -> int:
        return borrowing_policy.days_overdue(self, now or now_local())

    def status(self, now: Optional[datetime] = None) -> str:
        if self.is_returned:
            return "returned"
        if self.is_overdue(now):
            return "overdue"
        return "active"

    def validation_errors(self, on_create: bool = False) -> Dict[str, List[str]]:
        errors: Dict[str, List[str]] = {}
        if self.due_date is None:
            errors.setdefault("due_date", []).append("can't be blank")
        elif not borrowing_policy.due_date_valid(self.borrowed_at, self.due_date):
            errors.setdefault("due_date", []).append("must be after borrowed date")
        if on_create and self.book is not None and not self.book.available:
            errors.setdefault("book", []).append("is not available")
        return errors

    def mark_returned(self, now: datetime) -> None:
        if self.is_returned:
            raise LoanAlreadyReturned()
        self.returned_at = now

    def to_dict(self, now: Optional[datetime] = None, include_book: bool = True):
        now = now or now_local()
        return {
            "id": str(self.loan_id),
            "userId": str(self.user_id),
            "bookId": str(self.book_id),
            "borrowedAt": self.borrowed_at.isoformat() if self.borrowed_at else None,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "returnedAt": self.returned_at.isoformat() if self.returned_at else None,
            "status": self.status(now),
            "daysOverdue": self.days_overdue(now),
            "book": self.book.to_dict() if include_book and self.book else None,
        }
