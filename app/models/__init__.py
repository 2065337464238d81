from .user import User
from .book import Author, Category, Book
from .loan import Loan

__all__ = [
    "User",
    "Author",
    "Category",
    "Book",
    "Loan",
]
