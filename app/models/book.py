from sqlalchemy import Column, String, DateTime, Date, Integer, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class Author(Base):
    __tablename__ = "author"

    author_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    biography = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    books = relationship("Book", back_populates="author")

    def to_dict(self, include_books: bool = False):
        data = {
            "id": str(self.author_id),
            "name": self.name,
            "biography": self.biography,
        }
        if include_books:
            data["booksCount"] = len(self.books)
            data["books"] = [book.to_dict() for book in self.books]
        return data

class Category(Base):
    __tablename__ = "category"

    category_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    books = relationship("Book", back_populates="category")

    def to_dict(self, include_books: bool = False):
        data = {
            "id": str(self.category_id),
            "name": self.name,
            "description": self.description,
        }
        if include_books:
            data["booksCount"] = len(self.books)
            data["books"] = [book.to_dict() for book in self.books]
        return data

class Book(Base):
    __tablename__ = "book"

    book_id = Column(Integer, primary_key=True, autoincrement=True)
    isbn = Column(String(20), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    publication_date = Column(Date, nullable=True)
    # Written only by app.services.loan_service; no request schema exposes it
    available = Column(Boolean, default=True, nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("author.author_id", ondelete="SET NULL"), nullable=True, index=True)
    category_id = Column(Integer, ForeignKey("category.category_id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    author = relationship("Author", back_populates="books")
    category = relationship("Category", back_populates="books")
    loans = relationship("Loan", back_populates="book", cascade="all, delete-orphan")

    @property
    def is_borrowed(self) -> bool:
        return not self.available

    @property
    def display_title(self) -> str:
        author = self.author.name if self.author else "Unknown author"
        category = self.category.name if self.category else "Uncategorized"
        return f"{self.title} - {author} ({category})"

    def current_loan(self):
        """Return the active loan for this book, if any."""
        for loan in self.loans:
            if loan.returned_at is None:
                return loan
        return None

    def to_dict(self, include_loan_info: bool = False):
        data = {
            "id": str(self.book_id),
            "isbn": self.isbn,
            "title": self.title,
            "description": self.description,
            "publicationDate": self.publication_date.isoformat() if self.publication_date else None,
            "available": self.available,
            "displayTitle": self.display_title,
            "author": self.author.to_dict() if self.author else None,
            "category": self.category.to_dict() if self.category else None,
        }
        if include_loan_info:
            loan = self.current_loan()
            data["currentLoan"] = loan.to_dict(include_book=False) if loan else None
        return data
