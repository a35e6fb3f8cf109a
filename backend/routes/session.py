"""Story session endpoints: view, start, load, save, choose, reset."""

from fastapi import APIRouter, Depends, HTTPException, Request

from storyloom.engine import EngineStateError
from storyloom.session import GameSession, GenerationInProgress, SessionView

from .models import ChooseBody, SaveResult

router = APIRouter()


def get_session(request: Request) -> GameSession:
    return request.app.state.session


@router.get("/session", response_model=SessionView)
async def get_view(session: GameSession = Depends(get_session)):
    """Current scene, scores, cast, background and status."""
    return session.view()


@router.post("/session/start", response_model=SessionView)
async def start_story(session: GameSession = Depends(get_session)):
    """Generate a new story and start at scene_1. Failures land in `error`."""
    try:
        await session.start_new()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    return session.view()


@router.post("/session/load", response_model=SessionView)
async def load_story(session: GameSession = Depends(get_session)):
    """Resume the saved story."""
    if not session.save_exists():
        raise HTTPException(404, "No saved game")
    try:
        session.load()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    return session.view()


@router.post("/session/save", response_model=SaveResult)
async def save_story(session: GameSession = Depends(get_session)):
    """Save the story being played."""
    if session.status != "active":
        raise HTTPException(409, "No story in progress")
    return SaveResult(ok=session.save())


@router.post("/session/choose", response_model=SessionView)
async def choose(body: ChooseBody, session: GameSession = Depends(get_session)):
    """Take one of the current scene's choices by position."""
    try:
        session.choose(body.index)
    except EngineStateError:
        raise HTTPException(409, "No story in progress")
    except IndexError:
        raise HTTPException(400, "No such choice")
    return session.view()


@router.post("/session/reset", response_model=SessionView)
async def reset_story(session: GameSession = Depends(get_session)):
    """Drop the current story and delete the save."""
    try:
        session.reset()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    return session.view()
