from fastapi import APIRouter

from studysync.core.config import settings

router = APIRouter(tags=["Misc"])

@router.get("/health")
def health():
    return {"status": "ok", "generation_configured": bool(settings.GEMINI_API_KEY)}
