from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db import get_db

router = APIRouter(tags=["system"])


@router.get("/health", response_model=dict[str, Any])
def health(db: Session = Depends(get_db)) -> dict[str, Any]:
    """Liveness plus a database round trip."""
    settings = get_settings()
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "app": settings.app_name,
        "environment": settings.environment,
        "database": database,
    }
