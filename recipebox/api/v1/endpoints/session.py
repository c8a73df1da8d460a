"""Session endpoint."""

from fastapi import APIRouter

from recipebox.dependencies import CurrentSession
from recipebox.schemas.auth import SessionView

router = APIRouter()


@router.get("/session", response_model=SessionView)
async def get_session(session: CurrentSession) -> SessionView:
    """Current session view, re-read from the identity store on every call."""
    return session
