from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.database import get_db
from app.models.user import User
from app.models.book import Book
from app.models.loan import Loan
from app.services import loan_service
from app.services.auth import get_current_user
from app.schemas.loan import LoanResponse, LoanCreate
from app.utils.timezone import now_local

router = APIRouter(prefix="/api/library/loans", tags=["Library Loans"])

def _visible_loans(db: Session, current_user: User, all_users: bool = False):
    query = db.query(Loan)
    if not (all_users and current_user.can_view_all_loans()):
        query = query.filter(Loan.user_id == current_user.user_id)
    return query

def _get_loan(db: Session, current_user: User, loan_id: int) -> Optional[Loan]:
    query = db.query(Loan).filter(Loan.loan_id == loan_id)
    if not current_user.can_view_all_loans():
        query = query.filter(Loan.user_id == current_user.user_id)
    return query.first()

@router.get("/", response_model=List[LoanResponse])
async def get_loans(
    filter: Optional[str] = Query(None, pattern="^(active|returned|overdue)$"),
    all_users: bool = Query(False, description="Librarians and admins: include every user's loans"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get loans for the current user, optionally filtered by status."""
    current_date = now_local()
    query = _visible_loans(db, current_user, all_users)

    if filter == "active":
        query = query.filter(Loan.returned_at.is_(None))
    elif filter == "returned":
        query = query.filter(Loan.returned_at.isnot(None))
    elif filter == "overdue":
        query = query.filter(Loan.returned_at.is_(None), Loan.due_date < current_date)

    loans = query.order_by(Loan.borrowed_at.desc(), Loan.loan_id.desc()).all()
    return [LoanResponse.model_validate(loan.to_dict(current_date)) for loan in loans]

@router.get("/{loan_id}", response_model=LoanResponse)
async def get_loan(
    loan_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get specific loan details."""
    loan = _get_loan(db, current_user, loan_id)

    if not loan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Loan not found"
        )

    return LoanResponse.model_validate(loan.to_dict())

@router.post("/", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
async def create_loan(
    loan_data: LoanCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new loan (borrow a book).
    Librarians and admins may create loans for other users."""
    borrower = current_user
    if loan_data.user_id is not None and loan_data.user_id != current_user.user_id:
        if not current_user.can_manage_books():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only librarians and admins can create loans for other users"
            )
        borrower = db.query(User).filter(User.user_id == loan_data.user_id).first()
        if not borrower:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

    book = db.query(Book).filter(Book.book_id == loan_data.book_id).first()
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found"
        )

    result = loan_service.borrow(db, borrower, book, requested_due_date=loan_data.due_date)
    if not result.ok:
        raise result.error.to_http_exception()

    return LoanResponse.model_validate(result.loan.to_dict())

@router.patch("/{loan_id}/return", response_model=LoanResponse)
async def return_loan(
    loan_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Return a borrowed book."""
    result = loan_service.return_loan(db, _get_loan(db, current_user, loan_id))
    if not result.ok:
        raise result.error.to_http_exception()

    return LoanResponse.model_validate(result.loan.to_dict())
