import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query, Body
from sqlalchemy.orm import Session
from typing import List, Optional
from sqlalchemy import or_
from app.database import get_db
from app.models.book import Author, Book, Category
from app.models.loan import Loan
from app.models.user import User
from app.services import loan_service
from app.services.auth import get_current_user, require_librarian_or_admin
from app.schemas.book import (
    AuthorResponse, AuthorCreate, AuthorUpdate,
    CategoryResponse, CategoryCreate, CategoryUpdate,
    BookResponse, BookCreate, BookUpdate,
    IsbnValidationResponse
)
from app.schemas.loan import BorrowRequest, LoanResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/library", tags=["Library Books"])

def _get_book_or_404(db: Session, book_id: int) -> Book:
    book = db.query(Book).filter(Book.book_id == book_id).first()
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found"
        )
    return book

def _check_references(db: Session, author_id: Optional[int], category_id: Optional[int]):
    if author_id is not None and not db.query(Author).filter(Author.author_id == author_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Author not found"
        )
    if category_id is not None and not db.query(Category).filter(Category.category_id == category_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )

def _check_isbn_free(db: Session, isbn: str, exclude_id: Optional[int] = None):
    query = db.query(Book).filter(Book.isbn == isbn)
    if exclude_id is not None:
        query = query.filter(Book.book_id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="ISBN already registered"
        )

# Book endpoints
@router.get("/books", response_model=List[BookResponse])
async def get_books(
    search: Optional[str] = Query(None, description="Search by title, ISBN or description"),
    author_id: Optional[int] = Query(None, description="Filter by author"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    available: Optional[bool] = Query(None, description="Filter by availability"),
    db: Session = Depends(get_db)
):
    """Get list of books with optional search and filter."""
    query = db.query(Book)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Book.title.ilike(search_term),
                Book.isbn.ilike(search_term),
                Book.description.ilike(search_term)
            )
        )

    if author_id:
        query = query.filter(Book.author_id == author_id)

    if category_id:
        query = query.filter(Book.category_id == category_id)

    if available is not None:
        query = query.filter(Book.available == available)

    books = query.order_by(Book.title).all()
    return [BookResponse.model_validate(book.to_dict()) for book in books]

@router.get("/books/validate-isbn", response_model=IsbnValidationResponse)
async def validate_isbn(
    isbn: str = Query(..., min_length=1),
    exclude_id: Optional[int] = Query(None, description="Book being edited"),
    db: Session = Depends(get_db)
):
    """Check whether an ISBN is still free."""
    query = db.query(Book).filter(Book.isbn == isbn)
    if exclude_id is not None:
        query = query.filter(Book.book_id != exclude_id)
    return IsbnValidationResponse(valid=query.first() is None)

@router.get("/books/{book_id}", response_model=BookResponse)
async def get_book(book_id: int, db: Session = Depends(get_db)):
    """Get book details by ID, including the current loan if any."""
    book = _get_book_or_404(db, book_id)
    return BookResponse.model_validate(book.to_dict(include_loan_info=True))

@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    """Add a book to the catalogue. New books are available."""
    _check_isbn_free(db, book_data.isbn)
    _check_references(db, book_data.author_id, book_data.category_id)

    book = Book(**book_data.model_dump(), available=True)
    db.add(book)
    db.commit()
    db.refresh(book)
    logger.info(f"Book {book.book_id} created by user {current_user.user_id}")

    return BookResponse.model_validate(book.to_dict())

@router.patch("/books/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: int,
    book_data: BookUpdate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    """Update catalogue fields of a book."""
    book = _get_book_or_404(db, book_id)
    changes = book_data.model_dump(exclude_unset=True)

    if "isbn" in changes:
        _check_isbn_free(db, changes["isbn"], exclude_id=book_id)
    _check_references(db, changes.get("author_id"), changes.get("category_id"))

    for field, value in changes.items():
        setattr(book, field, value)

    db.commit()
    db.refresh(book)
    return BookResponse.model_validate(book.to_dict())

@router.delete("/books/{book_id}", status_code=status.HTTP_200_OK)
async def delete_book(
    book_id: int,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    """Delete a book and its loan history. Refused while the book is on loan."""
    book = _get_book_or_404(db, book_id)
    if book.current_loan() is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cannot delete book with active loans"
        )

    db.delete(book)
    db.commit()
    logger.info(f"Book {book_id} deleted by user {current_user.user_id}")
    return {"message": "Book deleted successfully"}

@router.post("/books/{book_id}/borrow", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
async def borrow_book(
    book_id: int,
    request: Optional[BorrowRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Borrow a book for the current user."""
    book = _get_book_or_404(db, book_id)
    result = loan_service.borrow(
        db, current_user, book,
        requested_due_date=request.due_date if request else None
    )
    if not result.ok:
        raise result.error.to_http_exception()
    return LoanResponse.model_validate(result.loan.to_dict())

@router.post("/books/{book_id}/return", response_model=LoanResponse)
async def return_book(
    book_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Return the current user's active loan of this book.
    Librarians and admins may return a book on anyone's behalf."""
    book = _get_book_or_404(db, book_id)
    query = db.query(Loan).filter(
        Loan.book_id == book.book_id,
        Loan.returned_at.is_(None)
    )
    if not current_user.can_view_all_loans():
        query = query.filter(Loan.user_id == current_user.user_id)

    result = loan_service.return_loan(db, query.first())
    if not result.ok:
        raise result.error.to_http_exception()
    return LoanResponse.model_validate(result.loan.to_dict())

# Author endpoints
def _get_author_or_404(db: Session, author_id: int) -> Author:
    author = db.query(Author).filter(Author.author_id == author_id).first()
    if not author:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Author not found"
        )
    return author

@router.get("/authors", response_model=List[AuthorResponse])
async def get_authors(
    search: Optional[str] = Query(None, description="Search by name"),
    db: Session = Depends(get_db)
):
    """Get list of authors."""
    query = db.query(Author)
    if search:
        query = query.filter(Author.name.ilike(f"%{search}%"))
    authors = query.order_by(Author.name).all()
    return [AuthorResponse.model_validate(author.to_dict()) for author in authors]

@router.get("/authors/{author_id}", response_model=AuthorResponse)
async def get_author(author_id: int, db: Session = Depends(get_db)):
    """Get author details with their books."""
    author = _get_author_or_404(db, author_id)
    return AuthorResponse.model_validate(author.to_dict(include_books=True))

@router.post("/authors", response_model=AuthorResponse, status_code=status.HTTP_201_CREATED)
async def create_author(
    author_data: AuthorCreate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    author = Author(**author_data.model_dump())
    db.add(author)
    db.commit()
    db.refresh(author)
    return AuthorResponse.model_validate(author.to_dict())

@router.patch("/authors/{author_id}", response_model=AuthorResponse)
async def update_author(
    author_id: int,
    author_data: AuthorUpdate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    author = _get_author_or_404(db, author_id)
    for field, value in author_data.model_dump(exclude_unset=True).items():
        setattr(author, field, value)
    db.commit()
    db.refresh(author)
    return AuthorResponse.model_validate(author.to_dict())

@router.delete("/authors/{author_id}")
async def delete_author(
    author_id: int,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    """Delete an author. Refused while any book references them."""
    author = _get_author_or_404(db, author_id)
    if author.books:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cannot delete author with associated books"
        )

    db.delete(author)
    db.commit()
    logger.info(f"Author {author_id} deleted by user {current_user.user_id}")
    return {"message": "Author deleted successfully"}

# Category endpoints
def _get_category_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.category_id == category_id).first()
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    return category

def _check_category_name_free(db: Session, name: str, exclude_id: Optional[int] = None):
    query = db.query(Category).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.category_id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category already exists"
        )

@router.get("/categories", response_model=List[CategoryResponse])
async def get_categories(
    search: Optional[str] = Query(None, description="Search by name"),
    db: Session = Depends(get_db)
):
    """Get list of categories."""
    query = db.query(Category)
    if search:
        query = query.filter(Category.name.ilike(f"%{search}%"))
    categories = query.order_by(Category.name).all()
    return [CategoryResponse.model_validate(category.to_dict()) for category in categories]

@router.get("/categories/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: int, db: Session = Depends(get_db)):
    """Get category details with its books."""
    category = _get_category_or_404(db, category_id)
    return CategoryResponse.model_validate(category.to_dict(include_books=True))

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    _check_category_name_free(db, category_data.name)

    category = Category(**category_data.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    return CategoryResponse.model_validate(category.to_dict())

@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    category_data: CategoryUpdate,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    category = _get_category_or_404(db, category_id)
    changes = category_data.model_dump(exclude_unset=True)
    if "name" in changes:
        _check_category_name_free(db, changes["name"], exclude_id=category_id)

    for field, value in changes.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return CategoryResponse.model_validate(category.to_dict())

@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    current_user: User = Depends(require_librarian_or_admin),
    db: Session = Depends(get_db)
):
    """Delete a category. Refused while any book references it."""
    category = _get_category_or_404(db, category_id)
    if category.books:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Cannot delete category with associated books"
        )

    db.delete(category)
    db.commit()
    logger.info(f"Category {category_id} deleted by user {current_user.user_id}")
    return {"message": "Category deleted successfully"}
