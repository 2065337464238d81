from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import date

class AuthorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    biography: Optional[str] = None

class AuthorCreate(AuthorBase):
    pass

class AuthorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    biography: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("name can't be blank")
        return value

class AuthorResponse(AuthorBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booksCount: Optional[int] = None
    books: Optional[List[dict]] = None

class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("name can't be blank")
        return value

class CategoryResponse(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booksCount: Optional[int] = None
    books: Optional[List[dict]] = None

# Book write schemas have no `available` field; loan transitions own it
class BookCreate(BaseModel):
    isbn: str = Field(..., min_length=1, max_length=20)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    publication_date: Optional[date] = None
    author_id: Optional[int] = None
    category_id: Optional[int] = None

class BookUpdate(BaseModel):
    isbn: Optional[str] = Field(None, min_length=1, max_length=20)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    publication_date: Optional[date] = None
    author_id: Optional[int] = None
    category_id: Optional[int] = None

    # Omitting a field leaves it unchanged; an explicit null is rejected
    @field_validator("isbn", "title")
    @classmethod
    def required_not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} can't be blank")
        return value

class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    isbn: str
    title: str
    description: Optional[str] = None
    publicationDate: Optional[date] = None
    available: bool
    displayTitle: str
    author: Optional[AuthorResponse] = None
    category: Optional[CategoryResponse] = None
    currentLoan: Optional[dict] = None

class IsbnValidationResponse(BaseModel):
    valid: bool
