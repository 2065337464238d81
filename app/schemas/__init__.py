from .auth import UserCreate, UserLogin, UserResponse, Token, RoleUpdate
from .book import (
    AuthorBase, AuthorCreate, AuthorUpdate, AuthorResponse,
    CategoryBase, CategoryCreate, CategoryUpdate, CategoryResponse,
    BookCreate, BookUpdate, BookResponse,
    IsbnValidationResponse
)
from .loan import LoanCreate, BorrowRequest, LoanResponse

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "Token", "RoleUpdate",
    "AuthorBase", "AuthorCreate", "AuthorUpdate", "AuthorResponse",
    "CategoryBase", "CategoryCreate", "CategoryUpdate", "CategoryResponse",
    "BookCreate", "BookUpdate", "BookResponse",
    "IsbnValidationResponse",
    "LoanCreate", "BorrowRequest", "LoanResponse",
]
