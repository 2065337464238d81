from typing import Dict, List, Optional
from fastapi import HTTPException, status
from app.services.borrowing_policy import MAX_ACTIVE_LOANS_PER_USER


class LoanError(Exception):
    """Expected, data-driven failure of a loan transition."""
    code = "loan_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Loan operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_detail())


class BorrowLimitExceeded(LoanError):
    code = "borrow_limit_exceeded"
    default_message = (
        f"You have reached the maximum number of borrowed books ({MAX_ACTIVE_LOANS_PER_USER})."
    )


class BookUnavailable(LoanError):
    code = "book_unavailable"
    default_message = "This book is not available for borrowing."


class ValidationFailed(LoanError):
    code = "validation_failed"
    default_message = "Loan is invalid"

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None):
        self.errors = errors
        super().__init__(message)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["errors"] = self.errors
        return detail


class LoanNotFound(LoanError):
    code = "loan_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Loan not found"


class LoanAlreadyReturned(LoanNotFound):
    code = "loan_already_returned"
    default_message = "Loan has already been returned"
