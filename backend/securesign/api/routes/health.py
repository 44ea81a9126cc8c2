from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlmodel import Session

from securesign.api.deps import get_db

router = APIRouter(tags=["health"])


@router.get("/live")
def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready(session: Session = Depends(get_db)) -> dict[str, str]:
    session.execute(text("SELECT 1"))
    return {"status": "ready"}
