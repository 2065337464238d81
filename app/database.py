from sqlalchemy import create_engine, DateTime
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator
from urllib.parse import quote_plus
import pytz
from app.config import settings
from app.utils.timezone import ensure_aware


def build_database_url() -> str:
    if settings.database_url:
        return settings.database_url
    db_user = quote_plus(settings.db_user or "")
    db_password = quote_plus(settings.db_password or "")
    return f"postgresql://{db_user}:{db_password}@{settings.db_host}:{settings.db_port}/{settings.db_name}"


DATABASE_URL = build_database_url()

if DATABASE_URL.startswith("sqlite"):
    # SQLite is used for local runs and tests; in-memory databases must share one connection
    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(DATABASE_URL, echo=False, **engine_kwargs)
else:
    # SSL connection arguments
    connect_args = {}
    if settings.db_ssl_mode != "disable":
        connect_args["sslmode"] = settings.db_ssl_mode
        if settings.db_ssl_cert:
            connect_args["sslcert"] = settings.db_ssl_cert
        if settings.db_ssl_key:
            connect_args["sslkey"] = settings.db_ssl_key
        if settings.db_ssl_root_cert:
            connect_args["sslrootcert"] = settings.db_ssl_root_cert

    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=10,
        max_overflow=20,
        echo=False,
        connect_args=connect_args
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class TZDateTime(TypeDecorator):
    """Timezone-aware DateTime that stores UTC and always loads aware values.

    SQLite drops tzinfo on the way in, so values are normalised to UTC
    before binding and tagged as UTC again when read back.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return ensure_aware(value).astimezone(pytz.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
