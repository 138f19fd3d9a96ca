from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    quota_guard = getattr(request.app.state, "quota_guard", None)
    return {
        "status": "ok",
        "service": "trading-journal",
        "ai_available": quota_guard.is_available() if quota_guard else True,
    }
