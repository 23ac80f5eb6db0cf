from fastapi import APIRouter, Depends

from signboard.api.deps import require_unlocked
from signboard.db import SessionLocal
from signboard.services.auth_gate import AuthSession
from signboard.services.content_store import ContentStore
from signboard.services.cycler import DisplayCycler, store_loader
from signboard.services.realtime import feed
from signboard.services.scheduler import AsyncioScheduler

router = APIRouter(prefix="/display", tags=["display"])

board = DisplayCycler(
    load=store_loader(ContentStore(SessionLocal)),
    scheduler=AsyncioScheduler(),
    on_change=feed.announce_slide,
)


@router.get("")
async def current_slide(session: AuthSession = Depends(require_unlocked)):
    return board.snapshot()


@router.post("/next")
async def next_slide(session: AuthSession = Depends(require_unlocked)):
    board.next()
    return board.snapshot()


@router.post("/previous")
async def previous_slide(session: AuthSession = Depends(require_unlocked)):
    board.previous()
    return board.snapshot()


@router.post("/refresh")
async def refresh_slides(session: AuthSession = Depends(require_unlocked)):
    board.refresh()
    return board.snapshot()
