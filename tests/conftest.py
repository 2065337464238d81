"""Shared fixtures: an in-memory SQLite database and small model factories."""
from __future__ import annotations

import itertools
import os

# Settings are read at import time, so the test database must be chosen first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["APP_TIMEZONE"] = "UTC"

from typing import Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Author, Book, Category, User  # noqa: E402
from app.services.auth import create_access_token  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role: str = "borrower") -> User:
        n = next(counter)
        user = User(
            user_fname="Reader",
            user_lname=str(n),
            user_email=f"reader{n}@example.com",
            user_password_hash="not-a-real-hash",
            user_role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_book(db):
    counter = itertools.count(1)
    author = Author(name="Ursula K. Le Guin")
    category = Category(name="Fiction")
    db.add_all([author, category])
    db.commit()

    def _make(title: Optional[str] = None) -> Book:
        n = next(counter)
        book = Book(
            title=title or f"Book {n}",
            isbn=f"978-0-00-{n:06d}",
            available=True,
            author_id=author.author_id,
            category_id=category.category_id,
        )
        db.add(book)
        db.commit()
        db.refresh(book)
        return book

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token({"sub": str(user.user_id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
