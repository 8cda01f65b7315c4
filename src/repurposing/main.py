from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.repurposing.api.v1.routes_alerts import router as alerts_router_v1
from src.repurposing.api.v1.routes_derivatives import router as derivatives_router_v1
from src.repurposing.api.v1.routes_jobs import router as jobs_router_v1
from src.repurposing.api.v1.routes_languages import router as languages_router_v1
from src.repurposing.api.v1.routes_portal import router as portal_router_v1
from src.repurposing.api.v1.routes_settings import router as settings_router_v1
from src.repurposing.api.v1.routes_sources import router as sources_router_v1
from src.repurposing.api.v1.routes_system import router as system_router_v1
from src.repurposing.api.v1.routes_templates import router as templates_router_v1
from src.repurposing.api.v1.routes_translations import router as translations_router_v1
from src.repurposing.api.v1.routes_webhooks import router as webhooks_router_v1
from src.repurposing.config import settings
from src.repurposing.infra.db.bootstrap import init_sql_repositories
from src.repurposing.services.translators.service import translator_auth_service

app = FastAPI(title="Content Repurposing Pipeline API")


@app.on_event("startup")
async def on_startup() -> None:
    # Swaps in SQL repositories when USE_SQL_REPOS and DATABASE_URL are set.
    init_sql_repositories()
    translator_auth_service.ensure_admin(settings.translator_admin_username, settings.translator_admin_password)


allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Liveness check."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(jobs_router_v1, prefix="/api/v1")
app.include_router(sources_router_v1, prefix="/api/v1")
app.include_router(derivatives_router_v1, prefix="/api/v1")
app.include_router(templates_router_v1, prefix="/api/v1")
app.include_router(translations_router_v1, prefix="/api/v1")
app.include_router(languages_router_v1, prefix="/api/v1")
app.include_router(portal_router_v1, prefix="/api/v1")
app.include_router(settings_router_v1, prefix="/api/v1")
app.include_router(alerts_router_v1, prefix="/api/v1")
app.include_router(webhooks_router_v1, prefix="/api/v1")
