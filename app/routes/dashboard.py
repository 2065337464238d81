from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.user import User
from app.services import dashboard_service
from app.services.auth import get_current_user
from app.utils.timezone import now_local

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

@router.get("")
async def get_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Library statistics, recent books, and active and recent loans."""
    now = now_local()
    return {
        "stats": dashboard_service.build_stats(db, current_user, now),
        "userLoans": dashboard_service.user_loans(db, current_user, now),
        "recentBooks": dashboard_service.recent_books(db),
        "recentLoans": dashboard_service.recent_loans(db, current_user, now=now),
    }
