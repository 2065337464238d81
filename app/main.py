import logging
from fastapi import FastAPI, Request

from starlette.middleware.base import BaseHTTPMiddleware
from app.config import settings
from app.database import engine, Base
from app.models import User, Author, Category, Book, Loan  # noqa: F401  (register tables)
from app.routes import auth, book, loan, dashboard

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log incoming requests."""
    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("Authorization")
        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip} - Auth: {'Present' if auth_header else 'Missing'}")

        response = await call_next(request)
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

Base.metadata.create_all(bind=engine)


app = FastAPI(
    title="Library Management API",
    description="Books, authors, categories and loans with role-based access",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Logging middleware (last, to log everything)
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(auth.router)
app.include_router(book.router)
app.include_router(loan.router)
app.include_router(dashboard.router)

@app.get("/")
async def root():
    return {"message": "Library Management API", "version": "1.0.0"}

@app.get("/api/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
