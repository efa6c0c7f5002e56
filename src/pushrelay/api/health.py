from fastapi import APIRouter

from pushrelay.config import get_settings

router = APIRouter()


@router.get("")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok", "version": get_settings().app_version}
