from fastapi import APIRouter

from src.repurposing.config import settings

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/backends")
async def backends_v1() -> dict:
    """Report which generation/translation backends and persistence are active."""
    return {
        "generation_backend": settings.generation_backend,
        "translation_backend": settings.translation_backend,
        "sql_repositories": settings.use_sql_repos,
    }
