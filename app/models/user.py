from datetime import datetime
from typing import Optional
from sqlalchemy import Column, String, DateTime, Integer, CheckConstraint
from sqlalchemy.orm import relationship, object_session
from sqlalchemy.sql import func
from app.database import Base
from app.services import borrowing_policy
from app.utils.timezone import now_local

ROLES = ("borrower", "librarian", "admin")

class User(Base):
    __tablename__ = "user"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    user_fname = Column(String(100), nullable=False)
    user_lname = Column(String(100), nullable=False)
    user_email = Column(String(255), unique=True, nullable=False, index=True)
    user_password_hash = Column(String(255), nullable=False)
    user_role = Column(String(50), default='borrower', nullable=False)  # borrower, librarian, admin
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    loans = relationship("Loan", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("user_role IN ('borrower', 'librarian', 'admin')", name="chk_user_role"),
    )

    def _active_loans_query(self):
        from app.models.loan import Loan
        return object_session(self).query(Loan).filter(
            Loan.user_id == self.user_id,
            Loan.returned_at.is_(None)
        )

    def active_loan_count(self) -> int:
        return self._active_loans_query().count()

    def overdue_loan_count(self, now: Optional[datetime] = None) -> int:
        from app.models.loan import Loan
        return self._active_loans_query().filter(Loan.due_date < (now or now_local())).count()

    def can_borrow_book(self) -> bool:
        return borrowing_policy.can_borrow(self.active_loan_count())

    # Role-based permissions
    def can_manage_books(self) -> bool:
        return self.user_role in ("librarian", "admin")

    def can_view_all_loans(self) -> bool:
        return self.user_role in ("librarian", "admin")

    def can_manage_users(self) -> bool:
        return self.user_role == "admin"

    def to_dict(self):
        return {
            "id": str(self.user_id),
            "name": f"{self.user_fname} {self.user_lname}",
            "fname": self.user_fname,
            "lname": self.user_lname,
            "email": self.user_email,
            "role": self.user_role,
        }
