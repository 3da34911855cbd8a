from fastapi import APIRouter

from fanchat.api.auth import router as auth_router
from fanchat.api.chats import router as chats_router
from fanchat.api.messages import router as messages_router
from fanchat.api.moderation import router as moderation_router
from fanchat.api.reports import router as reports_router
from fanchat.api.rules import router as rules_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(chats_router)
router.include_router(messages_router)
router.include_router(moderation_router)
router.include_router(reports_router)
router.include_router(rules_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the BandSync Fan Chat API"}
