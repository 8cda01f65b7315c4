from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Environment-driven settings for the pipeline service.

    Read once at import; tests monkeypatch attributes on the shared
    ``settings`` instance.
    """

    # SQL persistence; in-memory repositories are used unless both are set.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Operator API authentication. When ENABLE_API_AUTH=true, dashboard
    # endpoints require a valid key in the X-API-Key header.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # Shared secret for inbound webhooks (external workers, review tools,
    # content ingestion). Webhooks are always authenticated.
    webhook_api_key: Optional[str] = os.getenv("WEBHOOK_API_KEY")

    # Translator portal sessions.
    translator_jwt_secret: str = os.getenv("TRANSLATOR_JWT_SECRET", "dev-translator-secret")
    translator_jwt_algorithm: str = os.getenv("TRANSLATOR_JWT_ALGORITHM", "HS256")
    translator_token_expire_minutes: int = int(os.getenv("TRANSLATOR_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))
    translator_cookie_name: str = os.getenv("TRANSLATOR_COOKIE_NAME", "translator_token")
    translator_cookie_secure: bool = os.getenv("TRANSLATOR_COOKIE_SECURE", "false").lower() == "true"
    # First portal admin, created at startup when both are set and the
    # username does not exist yet.
    translator_admin_username: Optional[str] = os.getenv("TRANSLATOR_ADMIN_USERNAME")
    translator_admin_password: Optional[str] = os.getenv("TRANSLATOR_ADMIN_PASSWORD")

    # Job queue tuning. Lower priority values are more urgent.
    default_job_priority: int = int(os.getenv("DEFAULT_JOB_PRIORITY", "5"))
    batch_repurpose_priority: int = int(os.getenv("BATCH_REPURPOSE_PRIORITY", "2"))
    # Jobs left in "processing" longer than this are failed by the stall reaper.
    job_stall_timeout_seconds: int = int(os.getenv("JOB_STALL_TIMEOUT_SECONDS", "3600"))

    # Text generation / translation backend selection: "demo" (default) or "llm".
    generation_backend: str = os.getenv("GENERATION_BACKEND", "demo")
    translation_backend: str = os.getenv("TRANSLATION_BACKEND", "demo")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # CORS configuration: comma-separated origins. Default is "*" which is
    # acceptable for local development but should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
