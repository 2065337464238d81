from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class LoanCreate(BaseModel):
    book_id: int
    due_date: Optional[datetime] = None  # defaults to the standard loan duration
    user_id: Optional[int] = None  # librarians/admins may borrow on behalf of a user

class BorrowRequest(BaseModel):
    due_date: Optional[datetime] = None

class LoanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    userId: str
    bookId: str
    borrowedAt: datetime
    dueDate: datetime
    returnedAt: Optional[datetime] = None
    status: str
    daysOverdue: int
    book: Optional[dict] = None
